"""Fallback pricing rules used when no stored rule configuration is available."""
from .models import PricingRule

DEFAULT_PRICING_RULES: tuple[PricingRule, ...] = (
    PricingRule('base_replacement', 'job_type', 'Full Replacement Base', base_rate=4.5, unit='sqft'),
    PricingRule('base_repair', 'job_type', 'Repair Base', base_rate=150, unit='flat'),
    PricingRule('base_inspection', 'job_type', 'Inspection Base', base_rate=250, unit='flat'),
    PricingRule('material_asphalt_shingle', 'material', 'Asphalt Shingle', multiplier=1.0),
    PricingRule('material_metal', 'material', 'Metal Roofing', multiplier=2.2),
    PricingRule('material_tile', 'material', 'Tile Roofing', multiplier=2.5),
    PricingRule('pitch_flat', 'pitch', 'Flat Pitch', multiplier=0.9),
    PricingRule('pitch_steep', 'pitch', 'Steep Pitch', multiplier=1.25),
    PricingRule('story_2', 'stories', '2 Stories', multiplier=1.15),
    PricingRule('story_3', 'stories', '3+ Stories', multiplier=1.35),
    PricingRule('urgency_emergency', 'urgency', 'Emergency', multiplier=1.5),
    PricingRule('urgency_asap', 'urgency', 'ASAP', multiplier=1.2),
    PricingRule('feature_skylights', 'feature', 'Skylights', flat_fee=350),
    PricingRule('feature_chimneys', 'feature', 'Chimneys', flat_fee=450),
    PricingRule('feature_solar', 'feature', 'Solar Panels', flat_fee=1500),
    PricingRule('issue_leaks', 'issue', 'Active Leaks', flat_fee=500),
    PricingRule('issue_missing_shingles', 'issue', 'Missing Shingles', flat_fee=150),
    PricingRule('issue_storm_damage', 'issue', 'Storm Damage', flat_fee=750),
    PricingRule('range_low', 'range', 'Low Estimate', multiplier=0.85),
    PricingRule('range_high', 'range', 'High Estimate', multiplier=1.25),
    PricingRule('min_replacement', 'minimum', 'Minimum Replacement', min_charge=3500),
    PricingRule('min_repair', 'minimum', 'Minimum Repair', min_charge=350),
)
