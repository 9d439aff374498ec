"""
Coupon Validator - Decides whether a coupon is usable against a cart and
computes its discount.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from ..engine.models import Coupon, CouponCheck
from ..engine.records import within_window
from .scope import applicable_subtotal, compute_scoped_discount, has_scope_match

logger = logging.getLogger(__name__)

INVALID_COUPON_MESSAGE = "Invalid or inapplicable coupon."


class CouponValidator:
    """
    Validates coupons against the current cart.

    A coupon is usable when all hold:
    1. status is active
    2. `as_of` falls within [start_date, expiry_date], inclusive
    3. usage limits are not exhausted (global and per user)
    4. scoped coupons have at least one matching line
    5. the applicable subtotal reaches min_purchase, when set
    """

    def check(
        self,
        coupon: Optional[Coupon],
        lines: Iterable,
        cart_subtotal: float,
        as_of: Optional[datetime] = None,
        user_usage_count: int = 0,
    ) -> CouponCheck:
        """Validate with a reason for the first failed condition."""
        if coupon is None:
            return CouponCheck(False, INVALID_COUPON_MESSAGE)

        as_of = as_of or datetime.now()
        lines = list(lines)

        try:
            if not coupon.is_active:
                return CouponCheck(False, "Coupon is not active")

            if not within_window(as_of, coupon.start_date, None):
                return CouponCheck(False, "Coupon is not yet valid")
            if not within_window(as_of, None, coupon.expiry_date):
                return CouponCheck(False, "Coupon has expired")

            if coupon.usage_limit and coupon.usage_count >= coupon.usage_limit:
                return CouponCheck(False, "Coupon usage limit exceeded")
            if coupon.per_user_limit and user_usage_count >= coupon.per_user_limit:
                return CouponCheck(False, "Coupon already used the maximum number of times")

            if not has_scope_match(coupon, lines):
                return CouponCheck(False, "No items in the cart qualify for this coupon")

            if coupon.min_purchase is not None:
                scoped_total = applicable_subtotal(coupon, lines, cart_subtotal)
                if scoped_total < float(coupon.min_purchase):
                    return CouponCheck(
                        False, f"Minimum purchase of {float(coupon.min_purchase):.2f} required"
                    )
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed coupon %s: %s", getattr(coupon, 'code', '?'), e)
            return CouponCheck(False, INVALID_COUPON_MESSAGE)

        return CouponCheck(True)

    def is_valid(
        self,
        coupon: Optional[Coupon],
        lines: Iterable,
        cart_subtotal: float,
        as_of: Optional[datetime] = None,
        user_usage_count: int = 0,
    ) -> bool:
        return self.check(coupon, lines, cart_subtotal, as_of, user_usage_count).valid

    def compute_discount(self, coupon: Coupon, lines: Iterable, cart_subtotal: float) -> float:
        """
        Discount for a coupon against its applicable subtotal.

        Malformed coupons yield 0 rather than aborting the cart.
        """
        try:
            return compute_scoped_discount(coupon, lines, cart_subtotal)
        except (TypeError, ValueError) as e:
            logger.warning("Malformed coupon %s yields no discount: %s", getattr(coupon, 'code', '?'), e)
            return 0.0

    def available_coupons(
        self,
        coupons: Iterable[Coupon],
        lines: Iterable,
        cart_subtotal: float,
        as_of: Optional[datetime] = None,
        exclude_code: Optional[str] = None,
    ) -> list[Coupon]:
        """All currently valid coupons except the applied one, in catalog order."""
        lines = list(lines)
        exclude = exclude_code.upper() if exclude_code else None
        return [
            coupon for coupon in coupons
            if coupon.code != exclude and self.is_valid(coupon, lines, cart_subtotal, as_of)
        ]
