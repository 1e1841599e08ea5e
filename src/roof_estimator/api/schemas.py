"""
Pydantic request models for the estimator API.
"""
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl

from ..engine.models import JobType, RoofIssue, RoofMaterial, RoofPitch, TimelineUrgency

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

RuleCategory = Literal[
    'job_type', 'material', 'pitch', 'stories', 'urgency',
    'feature', 'issue', 'range', 'minimum',
]
RateUnit = Literal['sqft', 'linear_ft', 'flat']


# Estimates

class IntakeModel(BaseModel):
    job_type: Optional[JobType] = None
    roof_material: Optional[RoofMaterial] = None
    roof_pitch: Optional[RoofPitch] = None
    roof_size_sqft: Optional[float] = Field(None, ge=0)
    stories: Optional[int] = Field(None, ge=1)
    timeline_urgency: Optional[TimelineUrgency] = None
    has_skylights: bool = False
    has_chimneys: bool = False
    has_solar_panels: bool = False
    issues: list[RoofIssue] = Field(default_factory=list)


class PropertyModel(BaseModel):
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    county: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class EstimateRequest(BaseModel):
    intake: IntakeModel = Field(default_factory=IntakeModel)
    property: Optional[PropertyModel] = None


# Pricing rules

class PricingRuleCreate(BaseModel):
    """Request model for creating a rule."""
    rule_key: str = Field(..., min_length=1)
    rule_category: RuleCategory
    display_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    base_rate: Optional[float] = None
    unit: Optional[RateUnit] = None
    multiplier: float = 1.0
    flat_fee: Optional[float] = None
    min_charge: Optional[float] = None
    max_charge: Optional[float] = None
    is_active: bool = True


class PricingRuleUpdate(BaseModel):
    """Request model for updating a rule; ``id`` selects the row."""
    id: Optional[str] = None
    rule_key: Optional[str] = Field(None, min_length=1)
    rule_category: Optional[RuleCategory] = None
    display_name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    base_rate: Optional[float] = None
    unit: Optional[RateUnit] = None
    multiplier: Optional[float] = None
    flat_fee: Optional[float] = None
    min_charge: Optional[float] = None
    max_charge: Optional[float] = None
    is_active: Optional[bool] = None


class RulePreviewRequest(EstimateRequest):
    """Estimate request priced with an extra, unsaved rule."""
    candidate: PricingRuleCreate


# Settings

class CompanySettings(BaseModel):
    name: str = Field(..., min_length=1)
    legal_name: Optional[str] = None
    tagline: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    website: Optional[HttpUrl] = None


class AddressSettings(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class HoursSettings(BaseModel):
    weekdays_open: Optional[str] = None
    weekdays_close: Optional[str] = None
    saturday_open: Optional[str] = None
    saturday_close: Optional[str] = None
    sunday_open: Optional[str] = None
    sunday_close: Optional[str] = None
    emergency_available: Optional[bool] = None


class PricingSettings(BaseModel):
    overhead_percent: Optional[float] = Field(None, ge=0, le=100)
    profit_margin_percent: Optional[float] = Field(None, ge=0, le=100)
    tax_rate: Optional[float] = Field(None, ge=0, le=100)


class NotificationSettings(BaseModel):
    new_lead_email: Optional[bool] = None
    estimate_email: Optional[bool] = None
    daily_digest: Optional[bool] = None
    email_recipients: Optional[list[Annotated[str, Field(pattern=EMAIL_PATTERN)]]] = None


class LeadSource(BaseModel):
    id: str
    name: str
    enabled: bool


class SettingsUpdate(BaseModel):
    company: Optional[CompanySettings] = None
    address: Optional[AddressSettings] = None
    hours: Optional[HoursSettings] = None
    pricing: Optional[PricingSettings] = None
    notifications: Optional[NotificationSettings] = None
    lead_sources: Optional[list[LeadSource]] = None
