"""
Rule Matcher - Matches and prices the discount rules for a single product.

Every unit-price rule (customer category, category, brand, seasonal, bulk,
custom) is a MatchedRule tagged with its kind, and every kind is priced by
the one `candidate_price` function. The pricing engine decides how each
candidate combines with the running price.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from ..config.settings import BULK_BREAKS, CUSTOMER_DISCOUNTS, canonical_name
from .models import (
    KIND_BRAND,
    KIND_BULK,
    KIND_CATEGORY,
    KIND_CUSTOM,
    KIND_CUSTOMER,
    KIND_SEASONAL,
    CustomDiscount,
    CustomerContext,
    Product,
    ScopeDiscount,
)
from .records import within_window

logger = logging.getLogger(__name__)

# Kinds that always apply on top of the running price
STACKING_KINDS = frozenset({KIND_CUSTOMER, KIND_BULK})
# Kinds priced from the original product price rather than the running price
ORIGINAL_PRICE_KINDS = frozenset({KIND_CATEGORY, KIND_BRAND, KIND_SEASONAL})


@dataclass
class MatchedRule:
    """A rule that matched with context."""
    rule_id: str
    name: str
    kind: str
    action_type: str  # "percentage", "fixed" or "buy_one_get_one"
    action_value: float
    match_reason: str
    max_discount_percent: Optional[float] = None

    @property
    def stacks(self) -> bool:
        return self.kind in STACKING_KINDS


def format_percent(value: float) -> str:
    """15.0 -> '15%', 7.5 -> '7.5%'."""
    return f"{value:g}%"


def format_window(start: Optional[datetime], end: Optional[datetime]) -> str:
    """Window bounds as text; a missing bound is shown as open."""
    start_text = f"{start:%Y-%m-%d}" if start is not None else "open"
    end_text = f"{end:%Y-%m-%d}" if end is not None else "open"
    return f"{start_text}..{end_text}"


def bulk_discount_percent(quantity: int) -> int:
    """Bulk break for a quantity: 5% for 10-19, 10% for 20-49, 15% for 50+."""
    for threshold, percent in BULK_BREAKS:
        if quantity >= threshold:
            return percent
    return 0


def is_discount_applicable(
    discount: CustomDiscount,
    product: Product,
    quantity: int,
    as_of: datetime,
) -> bool:
    """Check validity window, minimum quantity and category/brand scope."""
    if not within_window(as_of, discount.start_date, discount.end_date):
        return False

    if discount.min_quantity and quantity < discount.min_quantity:
        return False

    if discount.applicable_categories:
        wanted = {c.lower() for c in discount.applicable_categories}
        if not product.category or product.category.lower() not in wanted:
            return False

    if discount.applicable_brands:
        wanted = {b.lower() for b in discount.applicable_brands}
        if not product.brand or product.brand.lower() not in wanted:
            return False

    return True


def candidate_price(
    rule: MatchedRule,
    original_price: float,
    current_price: float,
    quantity: int,
) -> tuple[float, str]:
    """
    Price a single rule.

    Returns (candidate_price, trace_message). Raises TypeError/ValueError for
    rules carrying unusable values; the caller skips those.
    """
    value = float(rule.action_value)
    base = original_price if rule.kind in ORIGINAL_PRICE_KINDS else current_price

    if rule.action_type == 'percentage':
        new_price = base * (1 - value / 100.0)
        if rule.max_discount_percent is not None:
            cap = original_price * (float(rule.max_discount_percent) / 100.0)
            if base - new_price > cap:
                new_price = base - cap
                return new_price, (
                    f"{rule.name}: {format_percent(value)} capped at "
                    f"{format_percent(rule.max_discount_percent)} of original, {base:.2f} → {new_price:.2f}"
                )
        return new_price, f"{rule.name}: {format_percent(value)} off {base:.2f} → {new_price:.2f}"

    if rule.action_type == 'fixed':
        new_price = max(0.0, base - value)
        return new_price, f"{rule.name}: {value:.2f} off {base:.2f} → {new_price:.2f}"

    if rule.action_type == 'buy_one_get_one':
        if quantity >= 2:
            new_price = base * 0.5
            return new_price, f"{rule.name}: buy one get one, {base:.2f} → {new_price:.2f}"
        return base, f"{rule.name}: buy one get one needs 2 or more units"

    raise ValueError(f"unknown action type '{rule.action_type}' on rule {rule.rule_id}")


class RuleMatcher:
    """
    Matches unit-price rules for a product.

    Scope discount tables (category, brand, seasonal) are loaded once from the
    catalog; custom discounts are passed per call.
    """

    def __init__(
        self,
        category_discounts: Iterable[ScopeDiscount] = (),
        brand_discounts: Iterable[ScopeDiscount] = (),
        seasonal_discounts: Iterable[ScopeDiscount] = (),
    ):
        # First entry wins on duplicate names
        self.category_discounts: dict[str, ScopeDiscount] = {}
        for d in category_discounts:
            self.category_discounts.setdefault(d.name.lower(), d)
        self.brand_discounts: dict[str, ScopeDiscount] = {}
        for d in brand_discounts:
            self.brand_discounts.setdefault(d.name.lower(), d)
        self.seasonal_discounts = list(seasonal_discounts)

    def find_matching_rules(
        self,
        product: Product,
        context: CustomerContext,
        quantity: int,
        as_of: datetime,
        custom_discounts: Iterable[CustomDiscount] = (),
    ) -> list[MatchedRule]:
        """
        Find all B2C rules that match, in evaluation order:
        customer category, category, brand, seasonal, bulk, custom.
        """
        matched = []

        customer_category = canonical_name(CUSTOMER_DISCOUNTS, context.category)
        customer_pct = CUSTOMER_DISCOUNTS.get(customer_category, 0)
        if customer_pct > 0:
            matched.append(MatchedRule(
                rule_id=f"CUSTOMER-{customer_category.upper()}",
                name=f"{customer_category} Customer ({format_percent(customer_pct)})",
                kind=KIND_CUSTOMER,
                action_type='percentage',
                action_value=customer_pct,
                match_reason=f"customer_category={customer_category}",
            ))

        if product.category:
            category = self.category_discounts.get(product.category.lower())
            if category and self._in_window(category, as_of):
                matched.append(self._scope_rule(category, "Category Discount", f"category={product.category}"))

        if product.brand:
            brand = self.brand_discounts.get(product.brand.lower())
            if brand and self._in_window(brand, as_of):
                matched.append(self._scope_rule(brand, "Brand Discount", f"brand={product.brand}"))

        for season in self.seasonal_discounts:
            if self._in_window(season, as_of):
                matched.append(self._scope_rule(
                    season,
                    f"{season.name} Sale",
                    format_window(season.start_date, season.end_date),
                ))

        bulk_pct = bulk_discount_percent(quantity)
        if bulk_pct:
            matched.append(MatchedRule(
                rule_id=f"BULK-{bulk_pct}",
                name=f"Bulk Order ({format_percent(bulk_pct)})",
                kind=KIND_BULK,
                action_type='percentage',
                action_value=bulk_pct,
                match_reason=f"qty>={quantity}",
            ))

        for discount in custom_discounts:
            try:
                applicable = is_discount_applicable(discount, product, quantity, as_of)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed custom discount %s: %s", getattr(discount, "id", "?"), e)
                continue
            if applicable:
                matched.append(MatchedRule(
                    rule_id=discount.id,
                    name=discount.name,
                    kind=KIND_CUSTOM,
                    action_type=discount.type,
                    action_value=discount.value,
                    match_reason="custom discount",
                    max_discount_percent=discount.max_discount_percent,
                ))

        return matched

    @staticmethod
    def _in_window(discount: ScopeDiscount, as_of: datetime) -> bool:
        return within_window(as_of, discount.start_date, discount.end_date)

    @staticmethod
    def _scope_rule(discount: ScopeDiscount, label: str, reason: str) -> MatchedRule:
        return MatchedRule(
            rule_id=f"{discount.kind.upper()}-{discount.name.upper()}",
            name=f"{label} ({format_percent(discount.percentage)})",
            kind=discount.kind,
            action_type='percentage',
            action_value=discount.percentage,
            match_reason=reason,
        )
