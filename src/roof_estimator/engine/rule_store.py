"""
Rule Store - Indexes pricing rules for lookup during a calculation.

Used by the pricing engine to resolve rules by key and to list the
rules of a category in the order they were supplied.
"""
import logging
from typing import Iterable, Optional

from .models import PricingRule

logger = logging.getLogger(__name__)


class RuleStore:
    """
    Read-only index over the active rules of a rule set.

    Inactive rules are dropped on construction. When two active rules share
    a key the later one wins.
    """

    def __init__(self, rules: Iterable[PricingRule]):
        self.rules: tuple[PricingRule, ...] = tuple(r for r in rules if r.is_active)
        self._by_key: dict[str, PricingRule] = {}
        self._by_category: dict[str, list[PricingRule]] = {}

        for rule in self.rules:
            if rule.rule_key in self._by_key:
                logger.warning("Duplicate pricing rule key %r, keeping the later entry", rule.rule_key)
            self._by_key[rule.rule_key] = rule
            self._by_category.setdefault(rule.rule_category, []).append(rule)

    def __len__(self) -> int:
        return len(self.rules)

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    def get_rule(self, key: str) -> Optional[PricingRule]:
        return self._by_key.get(key)

    def get_rules_by_category(self, category: str) -> list[PricingRule]:
        return list(self._by_category.get(category, []))

    @property
    def categories(self) -> list[str]:
        return list(self._by_category)
