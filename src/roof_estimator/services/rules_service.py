"""
Rules Service - CRUD operations for pricing rules.
Handles reading/writing the pricing_rules table and loading the rule set
a calculation runs against.
"""
import logging
from pathlib import Path
from typing import Callable, Optional
from dataclasses import dataclass, field

from supabase import Client

from ..engine import PricingEngine, PricingRule, DEFAULT_PRICING_RULES
from ..engine.models import RATE_UNITS, RULE_CATEGORIES
from ..rules.rule_table import load_rules_csv

logger = logging.getLogger(__name__)

# Rule key prefix expected for each category
KEY_PREFIXES = {
    'job_type': 'base_',
    'material': 'material_',
    'pitch': 'pitch_',
    'stories': 'story_',
    'urgency': 'urgency_',
    'feature': 'feature_',
    'issue': 'issue_',
    'range': 'range_',
    'minimum': 'min_',
}


class RuleNotFound(ValueError):
    """Raised when a rule ID does not exist."""


class DuplicateRuleKey(ValueError):
    """Raised when a rule key is already taken."""


@dataclass
class ValidationResult:
    """Result of rule validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class LoadedRules:
    """A rule set together with where it came from."""
    rules: list[PricingRule]
    source: str  # "database", "csv" or "defaults"


class RulesService:
    """Service for managing pricing rules."""

    TABLE = 'pricing_rules'

    def __init__(self, client_factory: Callable[[], Client], rules_csv_path: Optional[Path] = None):
        self._client_factory = client_factory
        self.rules_csv_path = rules_csv_path

    @property
    def client(self) -> Client:
        return self._client_factory()

    def list_rules(self, active_only: bool = True, category: Optional[str] = None) -> list[dict]:
        """List stored rule rows."""
        query = self.client.table(self.TABLE).select('*')
        if active_only:
            query = query.eq('is_active', True)
        if category:
            query = query.eq('rule_category', category)
        response = query.order('rule_category').order('rule_key').execute()
        return response.data or []

    def get_rule(self, rule_id: str) -> Optional[dict]:
        """Get a single rule row by ID."""
        response = self.client.table(self.TABLE).select('*').eq('id', rule_id).limit(1).execute()
        return response.data[0] if response.data else None

    def get_rule_by_key(self, rule_key: str) -> Optional[dict]:
        response = self.client.table(self.TABLE).select('*').eq('rule_key', rule_key).limit(1).execute()
        return response.data[0] if response.data else None

    def create_rule(self, data: dict) -> dict:
        """Create a new rule."""
        if self.get_rule_by_key(data['rule_key']):
            raise DuplicateRuleKey(f"Rule with key '{data['rule_key']}' already exists")

        payload = {'is_active': True, **data}
        response = self.client.table(self.TABLE).insert(payload).execute()
        created = response.data[0]
        logger.info("Created pricing rule %s", created.get('rule_key'))
        return created

    def update_rule(self, rule_id: str, updates: dict) -> dict:
        """Update an existing rule."""
        existing = self.get_rule(rule_id)
        if not existing:
            raise RuleNotFound(f"Rule with ID '{rule_id}' not found")

        new_key = updates.get('rule_key')
        if new_key and new_key != existing.get('rule_key'):
            other = self.get_rule_by_key(new_key)
            if other and other.get('id') != rule_id:
                raise DuplicateRuleKey(f"Rule with key '{new_key}' already exists")

        if not updates:
            return existing

        response = self.client.table(self.TABLE).update(updates).eq('id', rule_id).execute()
        updated = response.data[0] if response.data else {**existing, **updates}
        logger.info("Updated pricing rule %s (%s)", updated.get('rule_key'), ', '.join(sorted(updates)))
        return updated

    def validate_rule(self, data: dict) -> ValidationResult:
        """Validate a rule before saving."""
        result = ValidationResult(valid=True)

        rule_key = data.get('rule_key')
        category = data.get('rule_category')

        # Required fields
        if not rule_key:
            result.errors.append("rule_key is required")
        if not data.get('display_name'):
            result.errors.append("display_name is required")
        if not category:
            result.errors.append("rule_category is required")
        elif category not in RULE_CATEGORIES:
            result.errors.append(f"Unknown rule_category '{category}'")

        unit = data.get('unit')
        if unit and unit not in RATE_UNITS:
            result.errors.append(f"Unknown unit '{unit}'")

        multiplier = data.get('multiplier')
        if multiplier is not None and multiplier <= 0:
            result.errors.append("multiplier must be greater than 0")

        for name in ('base_rate', 'flat_fee', 'min_charge'):
            value = data.get(name)
            if value is not None and value < 0:
                result.errors.append(f"{name} cannot be negative")

        result.valid = not result.errors
        if not result.valid:
            return result

        # Warnings for rules the engine will never read
        prefix = KEY_PREFIXES.get(category)
        if prefix and not rule_key.startswith(prefix):
            result.warnings.append(
                f"Rules in category '{category}' are looked up as '{prefix}*'; '{rule_key}' will not be used"
            )
        if data.get('base_rate') is not None and category != 'job_type':
            result.warnings.append("base_rate is only read for job_type rules")
        if data.get('min_charge') is not None and category != 'minimum':
            result.warnings.append("min_charge is only read for minimum rules")
        if category in ('feature', 'issue') and not data.get('flat_fee'):
            result.warnings.append(f"{category} rules without a flat_fee have no effect")

        return result

    def get_stats(self) -> dict:
        """Get statistics about rules."""
        rules = self.list_rules(active_only=False)
        active = [r for r in rules if r.get('is_active')]
        by_category = {}
        for r in rules:
            category = r.get('rule_category') or 'unknown'
            by_category[category] = by_category.get(category, 0) + 1

        return {
            'total': len(rules),
            'active': len(active),
            'inactive': len(rules) - len(active),
            'by_category': by_category,
        }

    def load_active_rules(self) -> LoadedRules:
        """
        Load the rule set for a calculation.

        Tries the database, then the local rules CSV, then the built-in
        defaults. An empty or failing source falls through to the next.
        """
        try:
            rows = self.list_rules(active_only=True)
            if rows:
                return LoadedRules([PricingRule.from_row(r) for r in rows], 'database')
            logger.info("No active pricing rules in the database")
        except Exception as e:
            logger.warning("Could not load pricing rules from the database: %s", e)

        if self.rules_csv_path and self.rules_csv_path.exists():
            success, rules, errors = load_rules_csv(self.rules_csv_path)
            if success and rules:
                return LoadedRules(rules, 'csv')
            logger.warning("Ignoring rules CSV %s: %s", self.rules_csv_path, '; '.join(errors) or 'empty')

        logger.info("Using default pricing rules")
        return LoadedRules(list(DEFAULT_PRICING_RULES), 'defaults')

    def build_engine(self) -> PricingEngine:
        """Create an engine over the currently active rule set."""
        return PricingEngine(self.load_active_rules().rules)
