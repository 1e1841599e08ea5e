#!/usr/bin/env python
"""
Validate a pricing rules CSV, or export the built-in rule table.

Usage:
    python scripts/validate_rules.py                      # configured rules CSV
    python scripts/validate_rules.py path/to/rules.csv
    python scripts/validate_rules.py --export-defaults data/pricing_rules.csv
"""
import argparse
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from roof_estimator.config.settings import get_settings
from roof_estimator.engine import DEFAULT_PRICING_RULES, RuleStore
from roof_estimator.rules.rule_table import load_rules_csv, write_rules_csv


def main():
    parser = argparse.ArgumentParser(description="Validate a pricing rules CSV")
    parser.add_argument('rules_csv', nargs='?', type=Path, help="CSV to check (default: configured rules CSV)")
    parser.add_argument('--export-defaults', type=Path, metavar='PATH', help="write the default rules to PATH")
    args = parser.parse_args()

    if args.export_defaults:
        count = write_rules_csv(DEFAULT_PRICING_RULES, args.export_defaults)
        print(f"✅ Wrote {count} default rules to {args.export_defaults}")
        return

    rules_csv = args.rules_csv or get_settings().rules_csv
    print(f"Validating {rules_csv}...")
    success, rules, errors = load_rules_csv(rules_csv)

    if not success:
        for error in errors:
            print(f"  - {error}")
        print(f"\n❌ Validation failed with {len(errors)} errors")
        sys.exit(1)

    store = RuleStore(rules)
    print(f"✅ {len(rules)} rules valid ({len(store)} active)")
    for category in store.categories:
        print(f"  {category}: {len(store.get_rules_by_category(category))}")


if __name__ == "__main__":
    main()
