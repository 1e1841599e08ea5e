"""
Pricing Engine - Resolves an intake snapshot into a roofing price range.

Resolution order:
1. Base cost from the job type rule (falls back to the repair base)
2. Material, pitch, story and urgency multipliers (compounded)
3. Feature and issue flat fees (added after multipliers)
4. Minimum charge floor for the job type
5. Low / high range around the likely price

Missing rules never fail an estimate: each lookup either skips its
adjustment or falls back to a fixed default.
"""
import math
from typing import Iterable, Optional

from .models import (
    FEATURE_RULES,
    JobType,
    PricingAdjustment,
    PricingInput,
    PricingResult,
    PricingRule,
    base_rule_key,
    issue_rule_key,
    material_rule_key,
    minimum_rule_key,
    pitch_rule_key,
    story_rule_key,
    urgency_rule_key,
)
from .rule_store import RuleStore

DEFAULT_MIN_REPLACEMENT = 3500.0
DEFAULT_MIN_REPAIR = 350.0
DEFAULT_RANGE_LOW = 0.85
DEFAULT_RANGE_HIGH = 1.25

# Fixed illustrative split of the likely price
MATERIAL_SHARE = 0.4
LABOR_SHARE = 0.6

FLAT_FEE_CATEGORIES = ('feature', 'issue')


def round_half_up(value: float) -> int:
    """Round to the nearest dollar with halves going up (21037.5 -> 21038)."""
    return int(math.floor(value + 0.5))


def _percent(multiplier: float) -> str:
    return f"{multiplier * 100 - 100:.0f}"


class PricingEngine:
    """
    Core pricing engine over an immutable rule index.

    An instance holds no per-calculation state, so one engine can serve
    any number of callers.
    """

    def __init__(self, rules: Iterable[PricingRule]):
        self.store = RuleStore(rules)

    @property
    def rules(self) -> list[PricingRule]:
        return list(self.store.rules)

    def get_rule(self, key: str) -> Optional[PricingRule]:
        return self.store.get_rule(key)

    def get_rules_by_category(self, category: str) -> list[PricingRule]:
        return self.store.get_rules_by_category(category)

    def calculate(self, pricing_input: PricingInput) -> PricingResult:
        """
        Calculate an estimate.

        Args:
            pricing_input: intake answers and optional property data

        Returns:
            PricingResult with the price range, cost split and the
            non-zero adjustments that produced it
        """
        intake = pricing_input.intake
        job_type = intake.effective_job_type
        roof_size = intake.effective_roof_size
        adjustments: list[PricingAdjustment] = []

        base_cost = 0.0
        base_rule = self.get_rule(base_rule_key(job_type)) or self.get_rule('base_repair')
        if base_rule:
            base_cost = self._base_cost(base_rule, roof_size)
            adjustments.append(PricingAdjustment(
                name=base_rule.display_name,
                rule_key=base_rule.rule_key,
                impact=base_cost,
                description=f"Base {job_type.value.replace('_', ' ', 1)} rate",
                category='base',
            ))

        # Multipliers compound into the total but each one reports its
        # impact against the unmultiplied base cost
        total_multiplier = 1.0
        for rule, category, description in self._multiplier_rules(pricing_input):
            total_multiplier *= rule.multiplier
            adjustments.append(PricingAdjustment(
                name=rule.display_name,
                rule_key=rule.rule_key,
                impact=base_cost * (rule.multiplier - 1),
                description=description,
                category=category,
            ))

        for attr, key, description in FEATURE_RULES:
            if not getattr(intake, attr):
                continue
            rule = self.get_rule(key)
            if rule and rule.flat_fee:
                adjustments.append(PricingAdjustment(
                    name=rule.display_name,
                    rule_key=rule.rule_key,
                    impact=rule.flat_fee,
                    description=description,
                    category='feature',
                ))

        for issue in intake.issues:
            rule = self.get_rule(issue_rule_key(issue))
            if rule and rule.flat_fee:
                adjustments.append(PricingAdjustment(
                    name=rule.display_name,
                    rule_key=rule.rule_key,
                    impact=rule.flat_fee,
                    description=f"Repair for {rule.display_name.lower()}",
                    category='issue',
                ))

        multiplied_base = base_cost * total_multiplier
        flat_fees = sum(a.impact for a in adjustments if a.category in FLAT_FEE_CATEGORIES)
        likely = max(multiplied_base + flat_fees, self._minimum_charge(job_type))

        low_rule = self.get_rule('range_low')
        high_rule = self.get_rule('range_high')
        low_multiplier = (low_rule.multiplier if low_rule else 0) or DEFAULT_RANGE_LOW
        high_multiplier = (high_rule.multiplier if high_rule else 0) or DEFAULT_RANGE_HIGH

        return PricingResult(
            price_low=round_half_up(likely * low_multiplier),
            price_likely=round_half_up(likely),
            price_high=round_half_up(likely * high_multiplier),
            base_cost=round_half_up(base_cost),
            material_cost=round_half_up(likely * MATERIAL_SHARE),
            labor_cost=round_half_up(likely * LABOR_SHARE),
            adjustments=[a for a in adjustments if a.impact != 0],
            input_snapshot=pricing_input,
            rules_snapshot=self.rules,
        )

    def _base_cost(self, rule: PricingRule, roof_size: float) -> float:
        if rule.unit == 'sqft':
            return (rule.base_rate or 0) * roof_size
        if rule.unit == 'linear_ft':
            # Perimeter of a square roof with the same area
            return (rule.base_rate or 0) * math.sqrt(roof_size) * 4
        return rule.base_rate or rule.flat_fee or 0.0

    def _multiplier_rules(self, pricing_input: PricingInput):
        """Yield (rule, category, description) for every multiplier that moves the price."""
        intake = pricing_input.intake

        if intake.roof_material:
            rule = self.get_rule(material_rule_key(intake.roof_material))
            if rule and rule.multiplier != 1:
                yield rule, 'material', f"{_percent(rule.multiplier)}% for {rule.display_name.lower()}"

        if intake.roof_pitch:
            rule = self.get_rule(pitch_rule_key(intake.roof_pitch))
            if rule and rule.multiplier != 1:
                yield rule, 'pitch', f"{_percent(rule.multiplier)}% for {rule.display_name.lower()}"

        if intake.stories and intake.stories > 1:
            rule = self.get_rule(story_rule_key(intake.stories))
            if rule and rule.multiplier != 1:
                yield rule, 'stories', f"{_percent(rule.multiplier)}% for {intake.stories} stories"

        if intake.timeline_urgency:
            rule = self.get_rule(urgency_rule_key(intake.timeline_urgency))
            if rule and rule.multiplier != 1:
                if rule.multiplier > 1:
                    description = f"{_percent(rule.multiplier)}% urgency premium"
                else:
                    description = f"{100 - rule.multiplier * 100:.0f}% flexible scheduling discount"
                yield rule, 'urgency', description

    def _minimum_charge(self, job_type: JobType) -> float:
        rule = self.get_rule(minimum_rule_key(job_type))
        default = DEFAULT_MIN_REPLACEMENT if job_type is JobType.FULL_REPLACEMENT else DEFAULT_MIN_REPAIR
        return (rule.min_charge if rule else None) or default
