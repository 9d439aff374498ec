"""
Cart pricing: offers, coupon re-validation, combination policy, GST, totals.
"""
import dataclasses
from datetime import datetime

import pytest

from storefront_pricing.engine import AutoOffer, CartLine, Coupon, CustomDiscount, CustomerContext
from storefront_pricing.policy.coupon_validator import INVALID_COUPON_MESSAGE

PREMIUM = CustomerContext(customer_type='B2C', category='Premium')
NORMAL = CustomerContext(customer_type='B2C', category='Normal')

LAPTOP_OFFER = AutoOffer(
    id='OFF-1', title='10% off Laptops', type='percentage', value=10,
    min_purchase=500, applicable_category='Laptops',
)


def coupon(code, type='fixed', value=100.0, **kwargs):
    return Coupon(id=code, code=code, type=type, value=value, **kwargs)


@pytest.fixture
def laptop(make_product):
    return make_product(id='LAP-1', price=1000.0, mrp=1200.0, category='Laptops')


@pytest.fixture
def headphones(make_product):
    return make_product(id='AUD-1', price=200.0, category='Audio')


@pytest.fixture
def store_engine(make_engine, seed_scope_tables):
    """Seeded scope tables, the laptop offer and a few coupons."""
    def _make(settings_override=None, **tables):
        tables.setdefault('auto_offers', [LAPTOP_OFFER])
        tables.setdefault('coupons', [
            coupon('AUDIO200', 'fixed', 200, applicable_category='Audio'),
            coupon('FLAT100', 'fixed', 100),
            coupon('TEN', 'percentage', 10, min_purchase=5000),
        ])
        return make_engine(settings_override, **seed_scope_tables, **tables)
    return _make


def test_end_to_end_scenario(store_engine, laptop, as_of):
    """Premium laptop with the 10% Laptops offer: 900 - 90 + 145.80 GST = 955.80."""
    engine = store_engine()

    result = engine.compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, as_of=as_of)

    assert result.subtotal == 900.0
    assert result.auto_offer.id == 'OFF-1'
    assert result.auto_offer_discount == 90.0
    assert result.applied_coupon is None
    assert result.coupon_discount == 0.0
    assert result.total_discount == 90.0
    assert result.gst_amount == 145.80
    assert result.final_total == 955.80
    assert result.can_combine_discounts is True
    assert result.lines[0].rules_applied == ['Premium Customer (10%)']


def test_contract_dict_keys(store_engine, laptop, as_of):
    result = store_engine().compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, as_of=as_of)

    contract = result.to_contract_dict()

    assert list(contract) == [
        'subtotal', 'gstAmount', 'autoOffer', 'autoOfferDiscount', 'appliedCoupon',
        'couponDiscount', 'totalDiscount', 'finalTotal', 'canCombineDiscounts', 'availableCoupons',
    ]
    assert contract['autoOffer']['title'] == '10% off Laptops'
    assert contract['finalTotal'] == 955.80


def test_savings_summary(store_engine, laptop, as_of):
    result = store_engine().compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, as_of=as_of)

    assert result.mrp_total == 1200.0
    assert result.original_total == 1000.0
    assert result.savings == 190.0


def test_idempotence(store_engine, laptop, headphones, as_of):
    engine = store_engine()
    lines = [CartLine(laptop, 2), CartLine(headphones, 3)]

    first = engine.compute_cart_pricing(lines, PREMIUM, 'AUDIO200', as_of=as_of)
    second = engine.compute_cart_pricing(lines, PREMIUM, 'AUDIO200', as_of=as_of)

    assert first == second
    assert first.to_contract_dict() == second.to_contract_dict()


def test_coupon_combines_with_offer(store_engine, laptop, headphones, as_of):
    engine = store_engine()
    lines = [CartLine(laptop, 1), CartLine(headphones, 1)]

    result = engine.compute_cart_pricing(lines, PREMIUM, 'audio200', as_of=as_of)

    # Laptop 900, headphones 170 (Audio 15% beats Premium 10%)
    assert result.subtotal == 1070.0
    assert result.coupon_state == 'CouponApplied'
    assert result.applied_coupon.code == 'AUDIO200'
    assert result.coupon_discount == 170.0
    assert result.auto_offer_discount == 90.0
    assert result.total_discount == 260.0
    assert result.gst_amount == 145.80
    assert result.final_total == 955.80


def test_coupon_cleared_when_cart_no_longer_qualifies(store_engine, laptop, headphones, as_of):
    engine = store_engine()

    with_audio = engine.compute_cart_pricing(
        [CartLine(laptop, 1), CartLine(headphones, 1)], PREMIUM, 'AUDIO200', as_of=as_of
    )
    without_audio = engine.compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, 'AUDIO200', as_of=as_of)

    assert with_audio.coupon_state == 'CouponApplied'
    assert without_audio.coupon_state == 'NoCoupon'
    assert without_audio.applied_coupon is None
    assert without_audio.coupon_discount == 0.0
    assert INVALID_COUPON_MESSAGE in without_audio.notices


def test_unknown_coupon_code(store_engine, laptop, as_of):
    result = store_engine().compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, 'NOPE', as_of=as_of)

    assert result.applied_coupon is None
    assert result.notices == [INVALID_COUPON_MESSAGE]


def test_per_user_limit_clears_coupon(store_engine, laptop, as_of):
    engine = store_engine(coupons=[coupon('ONCE', 'fixed', 50, per_user_limit=1)])

    first_use = engine.compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, 'ONCE', as_of=as_of)
    second_use = engine.compute_cart_pricing(
        [CartLine(laptop, 1)], PREMIUM, 'ONCE', as_of=as_of, user_usage_count=1
    )

    assert first_use.coupon_discount == 50.0
    assert second_use.applied_coupon is None


def test_available_coupons_lists_valid_unapplied(store_engine, laptop, headphones, as_of):
    engine = store_engine()
    lines = [CartLine(laptop, 1), CartLine(headphones, 1)]

    result = engine.compute_cart_pricing(lines, PREMIUM, 'FLAT100', as_of=as_of)

    assert [c.code for c in result.available_coupons] == ['AUDIO200']


@pytest.mark.parametrize("coupon_value,offer_kept", [(100, False), (50, True), (90, True)])
def test_non_combinable_keeps_larger_discount(store_engine, settings, laptop, as_of, coupon_value, offer_kept):
    """Offer is 90; ties favour the offer."""
    engine = store_engine(
        dataclasses.replace(settings, can_combine_discounts=False),
        coupons=[coupon('CODE', 'fixed', coupon_value)],
    )

    result = engine.compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, 'CODE', as_of=as_of)

    assert result.can_combine_discounts is False
    if offer_kept:
        assert result.auto_offer_discount == 90.0
        assert result.coupon_discount == 0.0
        assert result.total_discount == 90.0
    else:
        assert result.auto_offer_discount == 0.0
        assert result.coupon_discount == 100.0
        assert result.total_discount == 100.0


def test_gst_on_discounted_subtotal(store_engine, make_product, as_of):
    engine = store_engine(auto_offers=[], coupons=[coupon('FLAT100', 'fixed', 100)])
    plain = make_product(id='X-1', price=500.0)

    result = engine.compute_cart_pricing([CartLine(plain, 2)], NORMAL, 'FLAT100', as_of=as_of)

    assert result.subtotal == 1000.0
    assert result.gst_amount == 162.0
    assert result.final_total == 1062.0


def test_final_total_never_negative(store_engine, laptop, as_of):
    engine = store_engine(coupons=[coupon('HUGE', 'fixed', 5000)])

    result = engine.compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, 'HUGE', as_of=as_of)

    assert result.coupon_discount == 900.0
    assert result.gst_amount == 0.0
    assert result.final_total == 0.0


def test_empty_cart(store_engine, as_of):
    result = store_engine(auto_offers=[AutoOffer(id='F', title='Flat 50', type='fixed', value=50)]).compute_cart_pricing(
        [], NORMAL, as_of=as_of
    )

    assert result.subtotal == 0.0
    assert result.auto_offer is None
    assert result.final_total == 0.0


def test_zero_quantity_line_is_ignored(store_engine, laptop, headphones, as_of):
    result = store_engine(auto_offers=[]).compute_cart_pricing(
        [CartLine(laptop, 1), CartLine(headphones, 0)], NORMAL, as_of=as_of
    )

    assert len(result.lines) == 1
    assert result.subtotal == 900.0


def test_offer_window_respected(store_engine, laptop):
    expiring = AutoOffer(
        id='OFF-OLD', title='Old', type='fixed', value=100, expiry_date=datetime(2026, 1, 31, 23, 59, 59)
    )
    engine = store_engine(auto_offers=[expiring])

    before = engine.compute_cart_pricing([CartLine(laptop, 1)], NORMAL, as_of=datetime(2026, 1, 31, 12, 0))
    after = engine.compute_cart_pricing([CartLine(laptop, 1)], NORMAL, as_of=datetime(2026, 2, 1, 12, 0))

    assert before.auto_offer_discount == 100.0
    assert after.auto_offer is None


def test_margin_floor_warning_on_line(store_engine, laptop, as_of):
    wipeout = CustomDiscount(id='CD-X', name='Wipeout', type='percentage', value=100)

    result = store_engine(auto_offers=[]).compute_cart_pricing(
        [CartLine(laptop, 1)], NORMAL, as_of=as_of, custom_discounts=[wipeout]
    )

    assert result.lines[0].unit_price == 100.0
    assert "Margin floor reached for LAP-1" in result.warnings


def test_trace_explains_total(store_engine, laptop, as_of):
    result = store_engine().compute_cart_pricing([CartLine(laptop, 1)], PREMIUM, as_of=as_of)

    text = result.get_trace_text()
    assert "Auto Offer: 10% off Laptops = -90.00" in text
    assert "Final Total" in text
    assert "Premium Customer (10%)" in result.lines[0].get_trace_text()


def test_no_floor_warning_when_discount_lands_on_floor(store_engine, make_product, as_of):
    exact = CustomDiscount(id='CD-E', name='Nine Hundred Off', type='fixed', value=900)
    plain = make_product(id='X-1', price=1000.0)

    result = store_engine(auto_offers=[]).compute_cart_pricing(
        [CartLine(plain, 1)], NORMAL, as_of=as_of, custom_discounts=[exact]
    )

    assert result.lines[0].unit_price == 100.0
    assert result.warnings == []


def test_malformed_custom_discount_does_not_break_cart(store_engine, make_product, as_of):
    discounts = [
        CustomDiscount(id='BAD', name='Bad Quantity', type='percentage', value=10, min_quantity='abc'),
        CustomDiscount(id='OK', name='Ten Off', type='percentage', value=10),
    ]
    plain = make_product(id='X-1', price=1000.0)

    result = store_engine(auto_offers=[]).compute_cart_pricing(
        [CartLine(plain, 1)], NORMAL, as_of=as_of, custom_discounts=discounts
    )

    assert result.subtotal == 900.0
    assert result.lines[0].rules_applied == ['Ten Off']
