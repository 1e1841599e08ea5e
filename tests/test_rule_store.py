import logging

from roof_estimator.engine import DEFAULT_PRICING_RULES, PricingRule, RuleStore


def test_indexes_default_rules():
    store = RuleStore(DEFAULT_PRICING_RULES)
    assert len(store) == 22
    assert 'material_metal' in store
    assert store.get_rule('material_metal').multiplier == 2.2
    assert store.get_rule('does_not_exist') is None


def test_category_lists_keep_insertion_order():
    store = RuleStore(DEFAULT_PRICING_RULES)
    keys = [r.rule_key for r in store.get_rules_by_category('material')]
    assert keys == ['material_asphalt_shingle', 'material_metal', 'material_tile']
    assert store.categories[0] == 'job_type'
    assert store.get_rules_by_category('nope') == []


def test_category_list_is_a_copy():
    store = RuleStore(DEFAULT_PRICING_RULES)
    store.get_rules_by_category('pitch').clear()
    assert len(store.get_rules_by_category('pitch')) == 2


def test_duplicate_key_logs_and_keeps_later(caplog):
    rules = [
        PricingRule('pitch_steep', 'pitch', 'Steep', multiplier=1.25),
        PricingRule('pitch_steep', 'pitch', 'Very Steep', multiplier=1.4),
    ]
    with caplog.at_level(logging.WARNING):
        store = RuleStore(rules)

    assert store.get_rule('pitch_steep').multiplier == 1.4
    # Both stay listed under the category
    assert len(store.get_rules_by_category('pitch')) == 2
    assert "pitch_steep" in caplog.text


def test_inactive_rules_dropped():
    rules = [
        PricingRule('material_tile', 'material', 'Tile', multiplier=2.5, is_active=False),
        PricingRule('material_metal', 'material', 'Metal', multiplier=2.2),
    ]
    store = RuleStore(rules)
    assert 'material_tile' not in store
    assert len(store) == 1
