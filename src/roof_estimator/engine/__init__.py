"""Engine subpackage - core pricing logic and rule indexing."""
from .pricing_engine import PricingEngine
from .rule_store import RuleStore
from .default_rules import DEFAULT_PRICING_RULES
from .models import Intake, Property, PricingInput, PricingRule, PricingAdjustment, PricingResult

__all__ = [
    'PricingEngine', 'RuleStore', 'DEFAULT_PRICING_RULES',
    'Intake', 'Property', 'PricingInput', 'PricingRule', 'PricingAdjustment', 'PricingResult',
]
