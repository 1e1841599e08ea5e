"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation.
Intake enumerations mirror the values stored by the lead funnel.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional


class JobType(str, Enum):
    FULL_REPLACEMENT = "full_replacement"
    REPAIR = "repair"
    INSPECTION = "inspection"
    MAINTENANCE = "maintenance"
    GUTTER = "gutter"
    OTHER = "other"


class RoofMaterial(str, Enum):
    ASPHALT_SHINGLE = "asphalt_shingle"
    METAL = "metal"
    TILE = "tile"
    SLATE = "slate"
    WOOD_SHAKE = "wood_shake"
    FLAT_MEMBRANE = "flat_membrane"
    UNKNOWN = "unknown"


class RoofPitch(str, Enum):
    FLAT = "flat"
    LOW = "low"
    MEDIUM = "medium"
    STEEP = "steep"
    VERY_STEEP = "very_steep"
    UNKNOWN = "unknown"


class TimelineUrgency(str, Enum):
    EMERGENCY = "emergency"
    ASAP = "asap"
    WITHIN_MONTH = "within_month"
    WITHIN_3_MONTHS = "within_3_months"
    FLEXIBLE = "flexible"
    JUST_EXPLORING = "just_exploring"


class RoofIssue(str, Enum):
    MISSING_SHINGLES = "missing_shingles"
    DAMAGED_SHINGLES = "damaged_shingles"
    LEAKS = "leaks"
    MOSS_ALGAE = "moss_algae"
    SAGGING = "sagging"
    FLASHING = "flashing"
    GUTTER_DAMAGE = "gutter_damage"
    VENTILATION = "ventilation"
    ICE_DAMS = "ice_dams"
    STORM_DAMAGE = "storm_damage"
    OTHER = "other"


RULE_CATEGORIES = (
    'job_type', 'material', 'pitch', 'stories', 'urgency',
    'feature', 'issue', 'range', 'minimum',
)
RATE_UNITS = ('sqft', 'linear_ft', 'flat')

DEFAULT_ROOF_SIZE_SQFT = 2000
MAX_STORY_RULE = 3

# Every job type has an entry; replacement is the only key that differs from its value
BASE_RULE_KEYS: dict[JobType, str] = {
    JobType.FULL_REPLACEMENT: 'base_replacement',
    JobType.REPAIR: 'base_repair',
    JobType.INSPECTION: 'base_inspection',
    JobType.MAINTENANCE: 'base_maintenance',
    JobType.GUTTER: 'base_gutter',
    JobType.OTHER: 'base_other',
}

# (intake attribute, rule key, adjustment description)
FEATURE_RULES: tuple[tuple[str, str, str], ...] = (
    ('has_skylights', 'feature_skylights', 'Skylight work'),
    ('has_chimneys', 'feature_chimneys', 'Chimney flashing'),
    ('has_solar_panels', 'feature_solar', 'Solar panel handling'),
)


def base_rule_key(job_type: JobType) -> str:
    return BASE_RULE_KEYS[job_type]


def minimum_rule_key(job_type: JobType) -> str:
    return 'min_replacement' if job_type is JobType.FULL_REPLACEMENT else 'min_repair'


def material_rule_key(material: RoofMaterial) -> str:
    return f"material_{material.value}"


def pitch_rule_key(pitch: RoofPitch) -> str:
    return f"pitch_{pitch.value}"


def story_rule_key(stories: int) -> str:
    """Buildings with three or more stories share the ``story_3`` rule."""
    return f"story_{min(stories, MAX_STORY_RULE)}"


def urgency_rule_key(urgency: TimelineUrgency) -> str:
    return f"urgency_{urgency.value}"


def issue_rule_key(issue: RoofIssue) -> str:
    return f"issue_{issue.value}"


def parse_enum(enum_cls, value):
    """Coerce a stored value into ``enum_cls``; unknown or empty values become None."""
    if value is None or value == '':
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        return None


def _optional_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    return float(value)


@dataclass(frozen=True)
class PricingRule:
    """A single configurable pricing factor."""
    rule_key: str
    rule_category: str
    display_name: str
    base_rate: Optional[float] = None
    unit: Optional[str] = None  # "sqft", "linear_ft" or "flat"
    multiplier: float = 1.0
    flat_fee: float = 0.0
    min_charge: Optional[float] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict) -> 'PricingRule':
        """Create a rule from a stored row; nulls fall back to field defaults."""
        multiplier = _optional_float(row.get('multiplier'))
        flat_fee = _optional_float(row.get('flat_fee'))
        return cls(
            rule_key=str(row.get('rule_key', '')).strip(),
            rule_category=str(row.get('rule_category', '')).strip(),
            display_name=str(row.get('display_name') or row.get('rule_key', '')),
            base_rate=_optional_float(row.get('base_rate')),
            unit=row.get('unit') or None,
            multiplier=1.0 if multiplier is None else multiplier,
            flat_fee=0.0 if flat_fee is None else flat_fee,
            min_charge=_optional_float(row.get('min_charge')),
            is_active=bool(row.get('is_active')),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Intake:
    """Answers collected from a prospective customer. Every field is optional."""
    job_type: Optional[JobType] = None
    roof_material: Optional[RoofMaterial] = None
    roof_pitch: Optional[RoofPitch] = None
    roof_size_sqft: Optional[float] = None
    stories: Optional[int] = None
    timeline_urgency: Optional[TimelineUrgency] = None
    has_skylights: bool = False
    has_chimneys: bool = False
    has_solar_panels: bool = False
    issues: list[RoofIssue] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'Intake':
        """Build an intake from a stored row or request body."""
        data = data or {}
        size = _optional_float(data.get('roof_size_sqft'))
        stories = data.get('stories')
        issues = []
        for raw in data.get('issues') or []:
            issue = parse_enum(RoofIssue, raw)
            if issue is not None:
                issues.append(issue)
        return cls(
            job_type=parse_enum(JobType, data.get('job_type')),
            roof_material=parse_enum(RoofMaterial, data.get('roof_material')),
            roof_pitch=parse_enum(RoofPitch, data.get('roof_pitch')),
            roof_size_sqft=size,
            stories=int(stories) if stories not in (None, '') else None,
            timeline_urgency=parse_enum(TimelineUrgency, data.get('timeline_urgency')),
            has_skylights=bool(data.get('has_skylights')),
            has_chimneys=bool(data.get('has_chimneys')),
            has_solar_panels=bool(data.get('has_solar_panels')),
            issues=issues,
        )

    @property
    def effective_job_type(self) -> JobType:
        return self.job_type or JobType.REPAIR

    @property
    def effective_roof_size(self) -> float:
        # Zero or negative sizes are treated as unknown
        if not self.roof_size_sqft or self.roof_size_sqft <= 0:
            return DEFAULT_ROOF_SIZE_SQFT
        return self.roof_size_sqft


@dataclass
class Property:
    """Optional property data attached to a lead."""
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    county: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'Property':
        data = data or {}
        return cls(
            street_address=data.get('street_address'),
            city=data.get('city'),
            state=data.get('state'),
            zip_code=data.get('zip_code') or data.get('zip'),
            county=data.get('county'),
            latitude=_optional_float(data.get('latitude')),
            longitude=_optional_float(data.get('longitude')),
        )


@dataclass
class PricingInput:
    """Snapshot consumed by a single calculation."""
    intake: Intake = field(default_factory=Intake)
    property: Optional[Property] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'PricingInput':
        prop = data.get('property')
        return cls(
            intake=Intake.from_dict(data.get('intake')),
            property=Property.from_dict(prop) if prop else None,
        )


@dataclass(frozen=True)
class PricingAdjustment:
    """One named contribution to the final price."""
    name: str
    rule_key: str
    impact: float
    description: str
    category: str


@dataclass
class PricingResult:
    """Complete result of a pricing calculation."""
    price_low: int
    price_likely: int
    price_high: int
    base_cost: int
    material_cost: int
    labor_cost: int
    adjustments: list[PricingAdjustment]
    input_snapshot: PricingInput
    rules_snapshot: list[PricingRule]

    def to_dict(self) -> dict[str, Any]:
        """Plain dict with enum members flattened to their values."""
        return _plain(asdict(self))

    def to_estimate_row(self) -> dict[str, Any]:
        """Columns of the ``estimates`` table."""
        data = self.to_dict()
        return {
            'price_low': self.price_low,
            'price_likely': self.price_likely,
            'price_high': self.price_high,
            'base_cost': self.base_cost,
            'material_cost': self.material_cost,
            'labor_cost': self.labor_cost,
            'adjustments': data['adjustments'],
            'input_snapshot': data['input_snapshot'],
            'pricing_rules_snapshot': data['rules_snapshot'],
        }


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
