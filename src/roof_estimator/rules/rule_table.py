"""
Rule Table - Validates and loads pricing rules from a CSV file.

Reads a rules CSV, validates each row against the pricing rule schema,
and returns PricingRule objects. Also writes rule sets back to CSV.
"""
import logging
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from ..engine.models import PricingRule, RATE_UNITS, RULE_CATEGORIES

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    'rule_key', 'rule_category', 'display_name', 'base_rate', 'unit',
    'multiplier', 'flat_fee', 'min_charge', 'is_active',
]


def parse_bool(value: str) -> bool:
    """Parse a boolean from CSV string."""
    return str(value).strip().lower() in ('true', '1', 'yes', 'on')


def parse_optional_float(value: str) -> Optional[float]:
    """Parse optional float."""
    if value is None or str(value).strip() == '':
        return None
    return float(value)


def parse_optional_str(value: str) -> Optional[str]:
    """Parse optional string (empty = None)."""
    if value is None or str(value).strip() == '':
        return None
    return str(value).strip()


def validate_rule_row(row: dict, line_num: int) -> tuple[Optional[PricingRule], list[str]]:
    """
    Validate and parse a rule from a CSV row.

    Returns (rule, errors) - rule is None if validation failed.
    """
    errors = []

    rule_key = parse_optional_str(row.get('rule_key'))
    if not rule_key:
        return None, [f"Line {line_num}: rule_key is required"]

    category = parse_optional_str(row.get('rule_category'))
    if not category:
        errors.append(f"Line {line_num}: rule_category is required")
    elif category not in RULE_CATEGORIES:
        errors.append(
            f"Line {line_num}: invalid rule_category '{category}', must be one of: {', '.join(RULE_CATEGORIES)}"
        )

    unit = parse_optional_str(row.get('unit'))
    if unit and unit not in RATE_UNITS:
        errors.append(f"Line {line_num}: invalid unit '{unit}', must be one of: {', '.join(RATE_UNITS)}")

    numbers = {}
    for name in ('base_rate', 'multiplier', 'flat_fee', 'min_charge'):
        try:
            numbers[name] = parse_optional_float(row.get(name))
        except ValueError:
            errors.append(f"Line {line_num}: {name} must be numeric")

    multiplier = numbers.get('multiplier')
    if multiplier is not None and multiplier <= 0:
        errors.append(f"Line {line_num}: multiplier must be greater than 0")

    for name in ('base_rate', 'flat_fee', 'min_charge'):
        value = numbers.get(name)
        if value is not None and value < 0:
            errors.append(f"Line {line_num}: {name} cannot be negative")

    if errors:
        return None, errors

    return PricingRule(
        rule_key=rule_key,
        rule_category=category,
        display_name=parse_optional_str(row.get('display_name')) or rule_key,
        base_rate=numbers['base_rate'],
        unit=unit,
        multiplier=1.0 if multiplier is None else multiplier,
        flat_fee=numbers['flat_fee'] or 0.0,
        min_charge=numbers['min_charge'],
        is_active=parse_bool(row.get('is_active', 'true') or 'true'),
    ), []


def load_rules_csv(rules_csv: Path) -> tuple[bool, list[PricingRule], list[str]]:
    """
    Load rules from CSV.

    Returns (success, rules, errors).
    """
    if not rules_csv.exists():
        return False, [], [f"Rules file not found: {rules_csv}"]

    try:
        df = pd.read_csv(rules_csv, dtype=str, keep_default_na=False)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read rule table %s: %s", rules_csv, e)
        return False, [], [f"Could not read {rules_csv}: {e}"]
    df.columns = [c.strip() for c in df.columns]

    all_errors = []
    rules = []
    for line_num, row in enumerate(df.to_dict(orient='records'), start=2):  # +2 for 1-indexed header row
        rule, errors = validate_rule_row(row, line_num)
        if errors:
            all_errors.extend(errors)
        elif rule:
            rules.append(rule)

    if all_errors:
        logger.warning("Rule table %s has %d invalid rows", rules_csv, len(all_errors))
        return False, rules, all_errors

    return True, rules, []


def rules_to_frame(rules: Iterable[PricingRule]) -> pd.DataFrame:
    """Tabulate rules with the CSV column layout."""
    return pd.DataFrame([rule.to_dict() for rule in rules], columns=CSV_COLUMNS)


def write_rules_csv(rules: Iterable[PricingRule], output_csv: Path) -> int:
    """Write rules to CSV. Returns the number of rows written."""
    df = rules_to_frame(rules)
    df['is_active'] = df['is_active'].map(lambda v: 'true' if v else 'false')
    output_csv.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_csv, index=False)
    return len(df)
