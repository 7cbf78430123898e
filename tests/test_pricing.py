from decimal import Decimal

from app.services.checkout.pricing import (
    PricingEngine,
    compute_subtotal,
    free_shipping_threshold,
    load_cart_lines,
    load_shipping_rules,
    resolve_shipping_fee,
)
from app.services.checkout.types import PricedLine, ShippingTier
from helpers import add_rule, make_product, make_user, put_in_cart

D = Decimal


def line(price, qty, pid=1):
    return PricedLine(product_id=pid, name="x", quantity=qty, unit_price=D(str(price)))


def tiers(*pairs):
    return tuple(ShippingTier(D(str(m)), D(str(c))) for m, c in pairs)


def fee(subtotal, rules):
    return resolve_shipping_fee(subtotal, rules, fallback_threshold=D("299"), fallback_fee=D("40"))


def test_subtotal_empty_is_zero():
    assert compute_subtotal([]) == D("0.00")


def test_subtotal_sums_price_times_quantity():
    assert compute_subtotal([line("100", 2), line("150", 1, pid=2)]) == D("350.00")


def test_scenario_a_below_free_tier():
    lines = [line("100", 2)]
    rules = tiers((0, 50), (300, 0))
    quote = PricingEngine().quote(lines, rules=rules)
    assert quote.subtotal == D("200.00")
    assert quote.shipping_fee == D("50.00")
    assert quote.total == D("250.00")


def test_scenario_b_crosses_free_tier():
    lines = [line("100", 2), line("150", 1, pid=2)]
    rules = tiers((0, 50), (300, 0))
    quote = PricingEngine().quote(lines, rules=rules)
    assert (quote.subtotal, quote.shipping_fee, quote.total) == (D("350.00"), D("0.00"), D("350.00"))


def test_greatest_applicable_threshold_wins():
    rules = tiers((0, 60), (200, 30), (500, 0))
    assert fee(D("199.99"), rules) == D("60.00")
    assert fee(D("200"), rules) == D("30.00")
    assert fee(D("750"), rules) == D("0.00")


def test_inactive_rules_are_ignored():
    rules = (ShippingTier(D("0"), D("50")), ShippingTier(D("100"), D("0"), is_active=False))
    assert fee(D("150"), rules) == D("50.00")


def test_equal_thresholds_pick_lowest_charge():
    rules = tiers((100, 30), (100, 10))
    assert fee(D("150"), rules) == D("10.00")


def test_no_applicable_tier_charges_nothing():
    assert fee(D("50"), tiers((100, 30))) == D("0.00")


def test_fallback_policy_when_rules_missing():
    assert fee(D("0"), None) == D("0.00")
    assert fee(D("100"), None) == D("40.00")
    assert fee(D("299"), None) == D("0.00")
    assert fee(D("100"), ()) == D("40.00")


def test_zero_subtotal_never_charges():
    assert fee(D("0"), tiers((0, 50))) == D("0.00")


def test_free_shipping_threshold_from_rules_or_fallback():
    assert free_shipping_threshold(tiers((0, 50), (500, 0), (800, 0)), D("299")) == D("500.00")
    assert free_shipping_threshold(tiers((0, 50)), D("299")) == D("299.00")
    assert free_shipping_threshold(None, D("299")) == D("299.00")


def test_quote_reports_distance_to_free_shipping():
    quote = PricingEngine().quote([line("100", 2)], rules=tiers((0, 50), (300, 0)))
    assert quote.free_shipping_threshold == D("300.00")
    assert quote.amount_to_free_shipping == D("100.00")
    assert quote.to_dict()["amount_to_free_shipping"] == 100.0


def test_engine_uses_configured_fallback():
    engine = PricingEngine.from_config({"SHIPPING_FALLBACK_THRESHOLD": "500", "SHIPPING_FALLBACK_FEE": "25"})
    assert engine.shipping_fee(D("400"), None) == D("25.00")
    assert engine.shipping_fee(D("500"), None) == D("0.00")


def test_pricing_is_idempotent_on_unchanged_cart(app):
    user = make_user()
    put_in_cart(user, make_product(100), 2)
    add_rule(0, 50)
    add_rule(300, 0)
    engine = PricingEngine()
    first = engine.quote(load_cart_lines(user.id))
    second = engine.quote(load_cart_lines(user.id))
    assert (first.subtotal, first.shipping_fee) == (second.subtotal, second.shipping_fee)
    assert first.total == D("250.00")


def test_rules_load_active_descending(app):
    add_rule(0, 50)
    add_rule(300, 0)
    add_rule(1000, 0, active=False)
    rules = load_shipping_rules()
    assert [r.min_order_value for r in rules] == [D("300.00"), D("0.00")]


def test_unavailable_rule_table_uses_fallback(app, monkeypatch):
    from sqlalchemy.exc import OperationalError
    from models.shipping import ShippingRule

    class Broken:
        def filter_by(self, **kw):
            raise OperationalError("select", {}, Exception("db down"))

    monkeypatch.setattr(ShippingRule, "query", Broken())
    assert load_shipping_rules() is None
    quote = PricingEngine().quote([line("100", 1)])
    assert quote.shipping_fee == D("40.00")
