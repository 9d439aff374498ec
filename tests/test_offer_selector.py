"""
Auto-offer selection: best absolute discount wins, first seen on ties.
"""
from datetime import datetime

import pytest

from storefront_pricing.engine import AutoOffer, CartLine, CustomerContext
from storefront_pricing.policy.offer_selector import OfferSelector


def offer(id, type='percentage', value=10.0, **kwargs):
    return AutoOffer(id=id, title=kwargs.pop('title', id), type=type, value=value, **kwargs)


@pytest.fixture
def selector():
    return OfferSelector()


@pytest.fixture
def cart(make_product):
    return [
        CartLine(make_product(id='AUD-1', price=150.0, category='Audio'), 1),
        CartLine(make_product(id='LAP-1', price=250.0, category='Laptops'), 2),
    ]


def test_greatest_discount_wins(selector, cart, as_of):
    offers = [offer('FIXED50', 'fixed', 50), offer('TEN', 'percentage', 10), offer('AUDIO20', 'percentage', 20, applicable_category='Audio')]

    selection = selector.select(offers, cart, 650.0, as_of)

    assert selection.offer.id == 'TEN'
    assert selection.discount == 65.0


def test_tie_keeps_first_seen(selector, cart, as_of):
    offers = [offer('FIRST', 'fixed', 50), offer('SECOND', 'fixed', 50)]

    assert selector.select(offers, cart, 650.0, as_of).offer.id == 'FIRST'


def test_priority_does_not_decide(selector, cart, as_of):
    offers = [offer('LOUD', 'fixed', 10, priority=99), offer('QUIET', 'fixed', 20, priority=0)]

    assert selector.select(offers, cart, 650.0, as_of).offer.id == 'QUIET'


def test_no_offer_returns_none(selector, cart, as_of):
    assert selector.select([], cart, 650.0, as_of) is None
    assert selector.select([offer('ZERO', 'fixed', 0)], cart, 650.0, as_of) is None


@pytest.mark.parametrize("skipped", [
    offer('OFF', is_active=False),
    offer('OLD', expiry_date=datetime(2026, 3, 1, 23, 59, 59)),
    offer('SOON', start_date=datetime(2026, 4, 1)),
    offer('CAM', applicable_category='Cameras'),
    offer('LAPMIN', applicable_category='Laptops', min_purchase=600),
], ids=lambda o: o.id)
def test_inapplicable_offers_are_skipped(selector, cart, as_of, skipped):
    assert selector.select([skipped], cart, 650.0, as_of) is None


def test_scoped_offer_uses_scoped_subtotal(selector, cart, as_of):
    laptops = offer('LAP10', 'percentage', 10, applicable_category='Laptops', min_purchase=500)

    selection = selector.select([laptops], cart, 650.0, as_of)

    assert selection.discount == 50.0


def test_max_discount_amount_caps_offer(selector, cart, as_of):
    capped = offer('CAPPED', 'percentage', 10, max_discount_amount=40)
    flat = offer('FLAT45', 'fixed', 45)

    selection = selector.select([capped, flat], cart, 650.0, as_of)

    assert selection.offer.id == 'FLAT45'
    assert selector.compute_discount(capped, cart, 650.0) == 40.0


def test_customer_targeting(selector, cart, as_of):
    premium_only = offer('PREMIUM', 'percentage', 5, customer_categories=('Premium', 'Gold'))
    normal = CustomerContext(customer_type='B2C', category='Normal')
    premium = CustomerContext(customer_type='B2C', category='Premium')
    gold = CustomerContext(customer_type='B2B', category=None, b2b_tier='Gold')

    assert selector.select([premium_only], cart, 650.0, as_of, normal) is None
    assert selector.select([premium_only], cart, 650.0, as_of, premium).discount == 32.5
    assert selector.select([premium_only], cart, 650.0, as_of, gold).discount == 32.5


def test_malformed_offer_is_skipped(selector, cart, as_of):
    offers = [offer('BROKEN', type='bogus', value=99), offer('OK', 'fixed', 10)]

    assert selector.select(offers, cart, 650.0, as_of).offer.id == 'OK'


def test_from_record_accepts_offer_table_columns():
    parsed = AutoOffer.from_record({
        'id': 'OFF-9', 'title': 'Monsoon 12%', 'discount_percentage': '12', 'discount_amount': '',
        'valid_from': '2026-07-01', 'valid_to': '2026-09-30', 'status': 'active',
        'minimum_order_value': '999', 'customer_categories': 'Premium|Standard',
    })

    assert parsed.type == 'percentage'
    assert parsed.value == 12.0
    assert parsed.is_active
    assert parsed.min_purchase == 999.0
    assert parsed.customer_categories == ('Premium', 'Standard')
    assert parsed.expiry_date == datetime(2026, 9, 30, 23, 59, 59, 999999)


def test_from_record_is_active_flag():
    parsed = AutoOffer.from_record({'id': 'X', 'type': 'fixed', 'value': '10', 'is_active': 'false'})

    assert not parsed.is_active
