"""
Customer Resolver - Resolves the commercial CustomerContext from a profile record.
"""
from typing import Optional

from ..config.settings import (
    B2B_TIER_DISCOUNTS,
    CUSTOMER_DISCOUNTS,
    DEFAULT_B2B_TIER,
    DEFAULT_CUSTOMER_CATEGORY,
    canonical_name,
)
from ..engine.models import CUSTOMER_B2B, CUSTOMER_B2C, CustomerContext
from ..engine.records import parse_bool, parse_optional_str


def resolve_customer_context(profile: Optional[dict]) -> CustomerContext:
    """
    Resolve the pricing context for a customer profile.

    Waterfall precedence:
    1. No profile: B2C / Normal
    2. customer_type B2B with a verified GSTIN: B2B / b2b_category (default Bronze)
    3. Anything else: B2C / customer_category (default Normal)

    B2B pricing is never granted to an unverified account, whatever the
    stored customer_type says. Category and tier names are matched to the
    configured tables case-insensitively. This function always returns a value.
    """
    if not profile:
        return CustomerContext(customer_type=CUSTOMER_B2C, category=DEFAULT_CUSTOMER_CATEGORY)

    user_id = parse_optional_str(profile.get('id') or profile.get('user_id'))
    customer_type = (parse_optional_str(profile.get('customer_type')) or CUSTOMER_B2C).upper()
    gst_verified = parse_bool(profile.get('gst_verified'))

    if customer_type == CUSTOMER_B2B and gst_verified:
        return CustomerContext(
            customer_type=CUSTOMER_B2B,
            category=None,
            b2b_tier=canonical_name(B2B_TIER_DISCOUNTS, parse_optional_str(profile.get('b2b_category'))) or DEFAULT_B2B_TIER,
            user_id=user_id,
        )

    return CustomerContext(
        customer_type=CUSTOMER_B2C,
        category=canonical_name(CUSTOMER_DISCOUNTS, parse_optional_str(profile.get('customer_category'))) or DEFAULT_CUSTOMER_CATEGORY,
        user_id=user_id,
    )
