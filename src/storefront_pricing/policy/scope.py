"""
Applicable-scope helpers shared by coupons and auto-offers.

A coupon or offer acts on the whole cart (global), on one category, or on one
product. Lines are anything with `.product` and `.line_total`: CartLine for
unpriced carts, LineItem for carts already run through the unit price resolver.
"""
from typing import Iterable

from ..engine.records import round_money


def is_scoped(discount) -> bool:
    return bool(discount.applicable_category or discount.applicable_product_id)


def line_in_scope(discount, line) -> bool:
    """True when the line falls inside a scoped discount's scope."""
    if discount.applicable_category:
        category = line.product.category or ''
        return category.lower() == discount.applicable_category.lower()
    if discount.applicable_product_id:
        return str(line.product.id) == str(discount.applicable_product_id)
    return True


def applicable_subtotal(discount, lines: Iterable, cart_subtotal: float) -> float:
    """Full cart subtotal for global discounts, else the sum of matching line totals."""
    if not is_scoped(discount):
        return cart_subtotal
    return round_money(sum(line.line_total for line in lines if line_in_scope(discount, line)))


def has_scope_match(discount, lines: Iterable) -> bool:
    """Global discounts always match; scoped ones need at least one matching line."""
    if not is_scoped(discount):
        return True
    return any(line_in_scope(discount, line) for line in lines)


def compute_scoped_discount(discount, lines: Iterable, cart_subtotal: float) -> float:
    """
    Discount amount for a coupon or offer against its applicable subtotal.

    Fixed discounts are capped at the applicable subtotal; percentage discounts
    are applicable_subtotal * value / 100. Never negative, never more than the
    applicable subtotal.
    """
    lines = list(lines)
    base = max(0.0, applicable_subtotal(discount, lines, cart_subtotal))
    value = float(discount.value)

    if discount.type == 'fixed':
        amount = min(value, base)
    elif discount.type == 'percentage':
        amount = base * value / 100.0
    else:
        raise ValueError(f"unsupported discount type '{discount.type}'")

    return round_money(min(max(amount, 0.0), base))
