import pytest

from roof_estimator.engine import DEFAULT_PRICING_RULES, Intake, PricingEngine, PricingInput, PricingRule
from roof_estimator.engine.models import JobType, RoofIssue, RoofMaterial, RoofPitch, TimelineUrgency
from roof_estimator.engine.pricing_engine import round_half_up


@pytest.fixture
def engine():
    return PricingEngine(DEFAULT_PRICING_RULES)


def price(engine, **intake):
    return engine.calculate(PricingInput(intake=Intake(**intake)))


def adjustment(result, rule_key):
    matches = [a for a in result.adjustments if a.rule_key == rule_key]
    assert matches, f"no adjustment for {rule_key}"
    return matches[0]


def test_round_half_up():
    assert round_half_up(21037.5) == 21038
    assert round_half_up(30937.5) == 30938
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_metal_steep_replacement(engine):
    """Metal roof on a steep 2000 sqft house."""
    result = price(
        engine,
        job_type=JobType.FULL_REPLACEMENT,
        roof_size_sqft=2000,
        roof_material=RoofMaterial.METAL,
        roof_pitch=RoofPitch.STEEP,
        stories=1,
    )

    assert result.base_cost == 9000
    assert result.price_likely == 24750
    assert result.price_low == 21038
    assert result.price_high == 30938
    assert result.material_cost == 9900
    assert result.labor_cost == 14850

    assert [a.rule_key for a in result.adjustments] == ['base_replacement', 'material_metal', 'pitch_steep']
    assert adjustment(result, 'material_metal').impact == pytest.approx(10800)
    assert adjustment(result, 'pitch_steep').impact == pytest.approx(2250)
    assert adjustment(result, 'material_metal').description == "120% for metal roofing"
    assert adjustment(result, 'base_replacement').description == "Base full replacement rate"


def test_multiplier_impacts_are_independent(engine):
    """Each multiplier reports against the base cost, so impacts do not add up to the compounded total."""
    result = price(
        engine,
        job_type=JobType.FULL_REPLACEMENT,
        roof_material=RoofMaterial.METAL,
        roof_pitch=RoofPitch.STEEP,
    )
    multiplier_impact = sum(a.impact for a in result.adjustments if a.category in ('material', 'pitch'))
    assert multiplier_impact == pytest.approx(13050)
    assert result.price_likely - result.base_cost == 15750


def test_repair_floor(engine):
    result = price(engine, job_type=JobType.REPAIR)

    assert result.base_cost == 150
    assert result.price_likely == 350
    assert result.price_low == 298
    assert result.price_high == 438
    assert [a.rule_key for a in result.adjustments] == ['base_repair']


def test_configured_minimum_charge():
    rules = [
        PricingRule('base_repair', 'job_type', 'Repair Base', base_rate=150, unit='flat'),
        PricingRule('min_repair', 'minimum', 'Minimum Repair', min_charge=500),
    ]
    result = PricingEngine(rules).calculate(PricingInput())
    assert result.price_likely == 500


def test_replacement_floor_defaults_without_rule():
    rules = [PricingRule('base_replacement', 'job_type', 'Full Replacement Base', base_rate=1, unit='sqft')]
    result = PricingEngine(rules).calculate(PricingInput(intake=Intake(job_type=JobType.FULL_REPLACEMENT)))
    assert result.base_cost == 2000
    assert result.price_likely == 3500


def test_missing_job_type_defaults_to_repair(engine):
    result = engine.calculate(PricingInput())
    assert result.price_likely == 350
    assert adjustment(result, 'base_repair').description == "Base repair rate"


def test_missing_base_rule_falls_back_to_repair(engine):
    result = price(engine, job_type=JobType.MAINTENANCE)
    base = adjustment(result, 'base_repair')
    assert base.description == "Base maintenance rate"
    assert result.price_likely == 350


def test_no_rules_at_all():
    result = PricingEngine([]).calculate(PricingInput(intake=Intake(job_type=JobType.FULL_REPLACEMENT)))
    assert result.base_cost == 0
    assert result.adjustments == []
    assert result.price_likely == 3500
    assert result.price_low == 2975
    assert result.price_high == 4375


@pytest.mark.parametrize("size", [None, 0, -100])
def test_unknown_roof_size_uses_default(engine, size):
    result = price(engine, job_type=JobType.FULL_REPLACEMENT, roof_size_sqft=size)
    assert result.base_cost == 9000


def test_linear_foot_base():
    rules = [PricingRule('base_gutter', 'job_type', 'Gutter Base', base_rate=10, unit='linear_ft')]
    result = PricingEngine(rules).calculate(
        PricingInput(intake=Intake(job_type=JobType.GUTTER, roof_size_sqft=2500))
    )
    # sqrt(2500) * 4 = 200 ft of perimeter
    assert result.base_cost == 2000
    assert result.price_likely == 2000
    assert result.price_low == 1700
    assert result.price_high == 2500


def test_flat_unit_uses_flat_fee_when_no_rate():
    rules = [PricingRule('base_inspection', 'job_type', 'Inspection', unit='flat', flat_fee=400)]
    result = PricingEngine(rules).calculate(PricingInput(intake=Intake(job_type=JobType.INSPECTION)))
    assert result.base_cost == 400


def test_neutral_multipliers_are_filtered(engine):
    result = price(
        engine,
        job_type=JobType.FULL_REPLACEMENT,
        roof_material=RoofMaterial.ASPHALT_SHINGLE,
        stories=1,
    )
    assert [a.rule_key for a in result.adjustments] == ['base_replacement']
    assert all(a.impact != 0 for a in result.adjustments)
    assert result.price_likely == 9000


def test_stories_share_the_three_story_rule(engine):
    result = price(engine, job_type=JobType.FULL_REPLACEMENT, stories=5)
    story = adjustment(result, 'story_3')
    assert story.description == "35% for 5 stories"
    assert story.impact == pytest.approx(3150)
    assert result.price_likely == 12150


def test_two_stories(engine):
    result = price(engine, job_type=JobType.FULL_REPLACEMENT, stories=2)
    assert adjustment(result, 'story_2').description == "15% for 2 stories"


def test_urgency_premium(engine):
    result = price(engine, job_type=JobType.FULL_REPLACEMENT, timeline_urgency=TimelineUrgency.EMERGENCY)
    urgency = adjustment(result, 'urgency_emergency')
    assert urgency.description == "50% urgency premium"
    assert result.price_likely == 13500


def test_urgency_discount():
    rules = [
        *DEFAULT_PRICING_RULES,
        PricingRule('urgency_flexible', 'urgency', 'Flexible', multiplier=0.9),
    ]
    result = PricingEngine(rules).calculate(PricingInput(intake=Intake(
        job_type=JobType.FULL_REPLACEMENT,
        timeline_urgency=TimelineUrgency.FLEXIBLE,
    )))
    urgency = adjustment(result, 'urgency_flexible')
    assert urgency.description == "10% flexible scheduling discount"
    assert urgency.impact == pytest.approx(-900)
    assert result.price_likely == 8100


def test_feature_and_issue_fees_added_after_multipliers(engine):
    result = price(
        engine,
        job_type=JobType.FULL_REPLACEMENT,
        roof_material=RoofMaterial.METAL,
        has_skylights=True,
        issues=[RoofIssue.LEAKS, RoofIssue.MOSS_ALGAE],
    )
    # 9000 * 2.2 + 350 + 500; moss has no rule
    assert result.price_likely == 20650
    assert adjustment(result, 'feature_skylights').description == "Skylight work"
    assert adjustment(result, 'issue_leaks').description == "Repair for active leaks"
    assert 'issue_moss_algae' not in [a.rule_key for a in result.adjustments]


def test_range_ordering(engine):
    inputs = [
        {},
        {'job_type': JobType.REPAIR, 'issues': [RoofIssue.STORM_DAMAGE]},
        {'job_type': JobType.FULL_REPLACEMENT, 'roof_material': RoofMaterial.TILE, 'stories': 3},
        {'job_type': JobType.INSPECTION, 'timeline_urgency': TimelineUrgency.ASAP},
    ]
    for intake in inputs:
        result = price(engine, **intake)
        assert result.price_low <= result.price_likely <= result.price_high


def test_calculation_is_deterministic(engine):
    intake = dict(
        job_type=JobType.FULL_REPLACEMENT,
        roof_material=RoofMaterial.TILE,
        roof_pitch=RoofPitch.FLAT,
        stories=2,
        has_chimneys=True,
    )
    assert price(engine, **intake).to_dict() == price(engine, **intake).to_dict()


def test_duplicate_keys_keep_the_later_rule():
    rules = [
        PricingRule('base_repair', 'job_type', 'Repair Base', base_rate=150, unit='flat'),
        PricingRule('base_repair', 'job_type', 'Repair Base v2', base_rate=400, unit='flat'),
    ]
    result = PricingEngine(rules).calculate(PricingInput())
    assert result.price_likely == 400
    assert adjustment(result, 'base_repair').name == "Repair Base v2"


def test_inactive_rules_are_ignored():
    rules = [
        PricingRule('base_repair', 'job_type', 'Repair Base', base_rate=150, unit='flat'),
        PricingRule('base_repair', 'job_type', 'Old Repair Base', base_rate=900, unit='flat', is_active=False),
    ]
    engine = PricingEngine(rules)
    assert engine.calculate(PricingInput()).price_likely == 350
    assert len(engine.rules) == 1


def test_result_snapshots(engine):
    result = price(engine, job_type=JobType.FULL_REPLACEMENT, issues=[RoofIssue.LEAKS])
    data = result.to_dict()

    assert data['input_snapshot']['intake']['job_type'] == 'full_replacement'
    assert data['input_snapshot']['intake']['issues'] == ['leaks']
    assert len(data['rules_snapshot']) == len(DEFAULT_PRICING_RULES)

    row = result.to_estimate_row()
    assert row['price_likely'] == result.price_likely
    assert row['pricing_rules_snapshot'] == data['rules_snapshot']


def test_negative_size_with_linear_foot_base():
    rules = [PricingRule('base_gutter', 'job_type', 'Gutter Base', base_rate=10, unit='linear_ft')]
    result = PricingEngine(rules).calculate(PricingInput(intake=Intake.from_dict({
        'job_type': 'gutter',
        'roof_size_sqft': -100,
    })))
    # Priced as the default 2000 sqft roof
    assert result.base_cost == round_half_up(10 * 2000 ** 0.5 * 4)
