"""
GSTIN verification and the B2B upgrade.
"""
from datetime import datetime

import pytest

from storefront_pricing.exceptions import GSTINVerificationError
from storefront_pricing.policy.customer_resolver import resolve_customer_context
from storefront_pricing.policy.gstin import upgrade_to_b2b, verify_gstin

VALID_GSTIN = '27AAPFU0939F1ZV'


def test_valid_gstin():
    result = verify_gstin(VALID_GSTIN, 'Acme Traders', as_of=datetime(2026, 3, 15))

    assert result.valid
    assert result.error is None
    assert result.details['state_code'] == '27'
    assert result.details['pan_number'] == 'AAPFU0939F'
    assert result.details['business_name'] == 'Acme Traders'
    assert result.details['verified_at'] == '2026-03-15T00:00:00'


def test_lowercase_and_whitespace_accepted():
    assert verify_gstin(' 27aapfu0939f1zv ').valid


@pytest.mark.parametrize("gstin", [
    '', '27AAPFU0939F1Z', '27AAPFU0939F1ZVX', '27AAPFU0939F0ZV', '27AAPFU0939F1XV', 'AAAPFU0939F1ZV7', None,
], ids=['empty', 'short', 'long', 'zero-entity', 'no-z', 'letters-first', 'none'])
def test_invalid_format(gstin):
    result = verify_gstin(gstin)

    assert not result.valid
    assert result.error == 'Invalid GSTIN format'


@pytest.mark.parametrize("state_code", ['00', '38', '99'])
def test_invalid_state_code(state_code):
    result = verify_gstin(f'{state_code}AAPFU0939F1ZV')

    assert not result.valid
    assert result.error == 'Invalid state code in GSTIN'


def test_upgrade_to_b2b():
    profile = {'id': 'u-1', 'customer_type': 'B2C', 'customer_category': 'Premium'}

    upgraded = upgrade_to_b2b(profile, {'gstin': VALID_GSTIN, 'business_name': 'Acme'}, as_of=datetime(2026, 3, 15))

    assert upgraded['customer_type'] == 'B2B'
    assert upgraded['gst_verified'] is True
    assert upgraded['b2b_category'] == 'Bronze'
    assert upgraded['gstin'] == VALID_GSTIN
    assert profile['customer_type'] == 'B2C'
    assert resolve_customer_context(upgraded).b2b_tier == 'Bronze'


def test_upgrade_rejects_bad_gstin():
    with pytest.raises(GSTINVerificationError) as exc_info:
        upgrade_to_b2b({'id': 'u-1'}, {'gstin': '99AAPFU0939F1ZV'})

    assert exc_info.value.reason == 'Invalid state code in GSTIN'
    assert exc_info.value.details == {'gstin': '99AAPFU0939F1ZV'}
