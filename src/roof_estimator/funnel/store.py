"""
Funnel Store - Answers collected by the estimate wizard.

The store keeps the wizard state between steps and persists a
serializable subset of it as JSON in a caller-supplied mapping
(Streamlit session state in the UI, a plain dict in tests).
"""
import json
import logging
from dataclasses import dataclass, field, asdict, fields
from typing import Any, MutableMapping, Optional

from ..engine.models import (
    Intake,
    JobType,
    PricingInput,
    PricingResult,
    Property,
    RoofIssue,
    RoofMaterial,
    RoofPitch,
    TimelineUrgency,
    parse_enum,
)

logger = logging.getLogger(__name__)

STORAGE_KEY = 'funnel-storage'
FIRST_STEP = 1
LAST_STEP = 4  # 1=Property, 2=Details, 3=Contact, 4=Estimate
MAX_PHOTOS = 10

PHOTO_STATUSES = ('pending', 'uploading', 'uploaded', 'analyzed', 'failed')
CONTACT_METHODS = ('phone', 'email', 'text')


@dataclass
class Address:
    street_address: str
    city: str
    state: str
    zip_code: str
    county: Optional[str] = None
    formatted_address: Optional[str] = None
    place_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class UploadedPhoto:
    id: str
    preview_url: str
    status: str = 'pending'
    storage_path: Optional[str] = None
    progress: Optional[int] = None
    ai_analysis: Optional[dict] = None
    # In-memory upload handle, never persisted
    file: Any = None

    def to_storage(self) -> dict:
        return {
            'id': self.id,
            'preview_url': self.preview_url,
            'storage_path': self.storage_path,
            'status': self.status,
            'ai_analysis': self.ai_analysis,
        }


@dataclass
class FunnelState:
    # Meta
    lead_id: Optional[str] = None
    share_token: Optional[str] = None
    current_step: int = FIRST_STEP
    is_loading: bool = False
    error: Optional[str] = None

    # Property
    address: Optional[Address] = None

    # Job
    job_type: Optional[JobType] = None
    job_description: str = ''

    # Roof details
    roof_material: Optional[RoofMaterial] = None
    roof_age_years: Optional[int] = None
    roof_size_sqft: Optional[float] = None
    stories: int = 1
    roof_pitch: Optional[RoofPitch] = None
    has_skylights: bool = False
    has_chimneys: bool = False
    has_solar_panels: bool = False

    # Issues and photos
    issues: list[RoofIssue] = field(default_factory=list)
    issues_description: str = ''
    photos: list[UploadedPhoto] = field(default_factory=list)

    # Timeline
    timeline_urgency: Optional[TimelineUrgency] = None
    has_insurance_claim: bool = False
    insurance_company: str = ''
    claim_number: str = ''

    # Contact
    first_name: str = ''
    last_name: str = ''
    email: str = ''
    phone: str = ''
    preferred_contact_method: str = 'phone'
    consent_marketing: bool = False
    consent_sms: bool = False
    consent_terms: bool = False

    # Result of the last calculation, not persisted
    estimate: Optional[dict] = None


# Fields left out of persisted storage
TRANSIENT_FIELDS = ('share_token', 'is_loading', 'error', 'estimate')

ENUM_FIELDS = {
    'job_type': JobType,
    'roof_material': RoofMaterial,
    'roof_pitch': RoofPitch,
    'timeline_urgency': TimelineUrgency,
}


class FunnelStore:
    """Wizard state with write-through persistence."""

    def __init__(self, storage: Optional[MutableMapping[str, Any]] = None):
        self.storage = storage if storage is not None else {}
        self.state = self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def to_storage(self) -> dict:
        """Serializable subset of the state."""
        data = {}
        for f in fields(FunnelState):
            if f.name in TRANSIENT_FIELDS:
                continue
            value = getattr(self.state, f.name)
            if f.name == 'photos':
                value = [p.to_storage() for p in value]
            elif f.name == 'address':
                value = asdict(value) if value else None
            elif f.name == 'issues':
                value = [i.value for i in value]
            elif f.name in ENUM_FIELDS:
                value = value.value if value else None
            data[f.name] = value
        return data

    @staticmethod
    def from_storage(data: dict) -> FunnelState:
        """Rebuild state from persisted data; unknown keys are ignored."""
        state = FunnelState()
        known = {f.name for f in fields(FunnelState)} - set(TRANSIENT_FIELDS)
        for name, value in data.items():
            if name not in known:
                continue
            if name in ENUM_FIELDS:
                value = parse_enum(ENUM_FIELDS[name], value)
            elif name == 'issues':
                value = [i for i in (parse_enum(RoofIssue, v) for v in value or []) if i]
            elif name == 'address':
                value = Address(**value) if value else None
            elif name == 'photos':
                value = [UploadedPhoto(**p) for p in value or []]
            setattr(state, name, value)
        return state

    def load(self) -> FunnelState:
        raw = self.storage.get(STORAGE_KEY)
        if not raw:
            return FunnelState()
        try:
            return self.from_storage(json.loads(raw))
        except (ValueError, TypeError) as e:
            logger.warning("Discarding unreadable funnel state: %s", e)
            return FunnelState()

    def save(self) -> bool:
        """Persist the state. Failures are logged and reported, never raised."""
        try:
            self.storage[STORAGE_KEY] = json.dumps(self.to_storage())
            return True
        except (TypeError, ValueError) as e:
            logger.warning("Could not persist funnel state: %s", e)
            return False

    def _update(self, **changes) -> None:
        for name, value in changes.items():
            setattr(self.state, name, value)
        self.save()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def set_lead_id(self, lead_id: str) -> None:
        self._update(lead_id=lead_id)

    def set_share_token(self, token: str) -> None:
        self._update(share_token=token)

    def set_current_step(self, step: int) -> None:
        self._update(current_step=max(FIRST_STEP, min(step, LAST_STEP)))

    def next_step(self) -> None:
        self._update(current_step=min(self.state.current_step + 1, LAST_STEP))

    def prev_step(self) -> None:
        self._update(current_step=max(self.state.current_step - 1, FIRST_STEP))

    def set_loading(self, is_loading: bool) -> None:
        self._update(is_loading=is_loading)

    def set_error(self, error: Optional[str]) -> None:
        self._update(error=error)

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------
    def set_address(self, address: Optional[Address]) -> None:
        self._update(address=address)

    def set_job_type(self, job_type: JobType) -> None:
        self._update(job_type=job_type)

    def set_job_description(self, description: str) -> None:
        self._update(job_description=description)

    def set_roof_details(self, **details) -> None:
        """Update roof answers; ``None`` leaves an answer unchanged except for size and age."""
        changes = {}
        for name in ('roof_material', 'stories', 'roof_pitch', 'has_skylights', 'has_chimneys', 'has_solar_panels'):
            if details.get(name) is not None:
                changes[name] = details[name]
        # Size and age may be cleared explicitly
        for name in ('roof_size_sqft', 'roof_age_years'):
            if name in details:
                changes[name] = details[name]
        self._update(**changes)

    def set_issues(self, issues: list[RoofIssue]) -> None:
        self._update(issues=list(issues))

    def toggle_issue(self, issue: RoofIssue) -> None:
        issues = self.state.issues
        if issue in issues:
            self._update(issues=[i for i in issues if i != issue])
        else:
            self._update(issues=[*issues, issue])

    def set_issues_description(self, description: str) -> None:
        self._update(issues_description=description)

    def add_photo(self, photo: UploadedPhoto) -> None:
        self._update(photos=[*self.state.photos, photo][:MAX_PHOTOS])

    def update_photo(self, photo_id: str, **updates) -> None:
        photos = []
        for photo in self.state.photos:
            if photo.id == photo_id:
                for name, value in updates.items():
                    setattr(photo, name, value)
            photos.append(photo)
        self._update(photos=photos)

    def remove_photo(self, photo_id: str) -> None:
        self._update(photos=[p for p in self.state.photos if p.id != photo_id])

    def set_timeline(self, **timeline) -> None:
        changes = {
            name: value for name, value in timeline.items()
            if name in ('timeline_urgency', 'has_insurance_claim', 'insurance_company', 'claim_number')
            and value is not None
        }
        self._update(**changes)

    def set_contact(self, **contact) -> None:
        allowed = (
            'first_name', 'last_name', 'email', 'phone', 'preferred_contact_method',
            'consent_marketing', 'consent_sms', 'consent_terms',
        )
        method = contact.get('preferred_contact_method')
        if method is not None and method not in CONTACT_METHODS:
            raise ValueError(f"preferred_contact_method must be one of: {', '.join(CONTACT_METHODS)}")
        self._update(**{k: v for k, v in contact.items() if k in allowed and v is not None})

    def set_estimate(self, result: Optional[PricingResult]) -> None:
        """Keep the headline figures of a calculation for the estimate step."""
        if result is None:
            self._update(estimate=None)
            return
        self._update(estimate={
            'price_low': result.price_low,
            'price_likely': result.price_likely,
            'price_high': result.price_high,
            'factors': [
                {'name': a.name, 'impact': a.impact, 'description': a.description}
                for a in result.adjustments
            ],
        })

    def reset(self) -> None:
        self.state = FunnelState()
        self.save()

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------
    def to_intake(self) -> Intake:
        s = self.state
        return Intake(
            job_type=s.job_type,
            roof_material=s.roof_material,
            roof_pitch=s.roof_pitch,
            roof_size_sqft=s.roof_size_sqft,
            stories=s.stories,
            timeline_urgency=s.timeline_urgency,
            has_skylights=s.has_skylights,
            has_chimneys=s.has_chimneys,
            has_solar_panels=s.has_solar_panels,
            issues=list(s.issues),
        )

    def to_pricing_input(self) -> PricingInput:
        address = self.state.address
        prop = None
        if address:
            prop = Property(
                street_address=address.street_address,
                city=address.city,
                state=address.state,
                zip_code=address.zip_code,
                county=address.county,
                latitude=address.latitude,
                longitude=address.longitude,
            )
        return PricingInput(intake=self.to_intake(), property=prop)
