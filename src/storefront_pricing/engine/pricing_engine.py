"""
Pricing Engine - Unit price resolution and cart pricing with traceability.

Every call is a pure computation over the DiscountCatalog snapshot the engine
was built with: no caching, no shared mutable state, no I/O. Calling it twice
with the same inputs and `as_of` returns identical results.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from ..config.settings import (
    B2B_TIER_DISCOUNTS,
    DEFAULT_B2B_DISCOUNT,
    DEFAULT_B2B_TIER,
    Settings,
    canonical_name,
    get_settings,
)
from ..exceptions import MalformedRecordError
from .catalog import DiscountCatalog
from .models import (
    CUSTOMER_B2B,
    KIND_CUSTOM,
    AutoOffer,
    CartLine,
    Coupon,
    CustomDiscount,
    CustomerContext,
    LineItem,
    OfferSelection,
    PricingResult,
    Product,
    ProductPricing,
    TraceStep,
    UnitPrice,
)
from .records import ceil_money, round_money, within_window
from .rule_matcher import ORIGINAL_PRICE_KINDS, RuleMatcher, candidate_price, format_percent

logger = logging.getLogger(__name__)


class PricingEngine:
    """
    Core pricing engine.

    Unit price resolution (B2C):
    1. Start from product.price
    2. Customer category discount (Normal 0%, Standard 5%, Premium 10%)
    3. Category / brand / seasonal discounts, each from the original price;
       only the single cheapest candidate replaces the running price
    4. Bulk break (5% / 10% / 15%) on top of the running price
    5. Custom discounts that beat the running price (best one wins)
    6. Margin floor at 10% of product.price, then round to 2 decimals

    Unit price resolution (B2B, verified accounts only):
    1. Matching active ProductPricing row for product, tier and quantity
    2. Otherwise the flat tier discount (Bronze 8%, Silver 12%, Gold 15%)
    3. Never above product.price; margin floor and rounding as for B2C

    Cart pricing: unit prices → subtotal → best auto-offer → re-validated
    coupon → combination policy → GST on the discounted subtotal → total.
    """

    def __init__(self, catalog: Optional[DiscountCatalog] = None, settings: Optional[Settings] = None):
        """Initialize engine with a catalog snapshot."""
        self.settings = settings or get_settings()
        self.catalog = catalog or DiscountCatalog()
        self.rule_matcher = RuleMatcher(
            category_discounts=self.catalog.category_discounts,
            brand_discounts=self.catalog.brand_discounts,
            seasonal_discounts=self.catalog.seasonal_discounts,
        )
        # policy modules import engine.models, so they load after this package
        from ..policy.coupon_validator import CouponValidator
        from ..policy.offer_selector import OfferSelector

        self.coupon_validator = CouponValidator()
        self.offer_selector = OfferSelector()
        self.data_dir = None

    @classmethod
    def from_data_dir(cls, data_dir=None, settings: Optional[Settings] = None) -> 'PricingEngine':
        """Build an engine from the CSV catalog in `data_dir` (default: settings.data_dir)."""
        from ..services.catalog_store import CatalogStore

        settings = settings or get_settings()
        store = CatalogStore(data_dir or settings.data_dir)
        engine = cls(store.load(), settings)
        engine.data_dir = store.data_dir
        return engine

    def reload_data(self):
        """Reload the catalog from disk. Engines built from an in-memory catalog keep it."""
        if self.data_dir is None:
            return
        fresh = self.from_data_dir(self.data_dir, self.settings)
        self.__dict__.update(fresh.__dict__)

    # ------------------------------------------------------------------
    # Unit price resolution
    # ------------------------------------------------------------------

    def resolve_unit_price(
        self,
        product: Product,
        context: CustomerContext,
        quantity: int = 1,
        custom_discounts: Optional[Iterable[CustomDiscount]] = None,
        as_of: Optional[datetime] = None,
    ) -> UnitPrice:
        """
        Resolve the per-unit price for one product.

        Args:
            product: Catalog product
            context: Resolved customer context
            quantity: Requested quantity (>= 1)
            custom_discounts: Named discount rules; defaults to the catalog's
            as_of: Pricing moment; defaults to now

        Returns:
            UnitPrice with the price, the labels of the rules that fired and a trace
        """
        if quantity < 1:
            raise ValueError(f"quantity must be at least 1, got {quantity}")

        as_of = as_of or datetime.now()
        if custom_discounts is None:
            custom_discounts = self.catalog.custom_discounts

        if context.is_b2b:
            unit = self._resolve_b2b(product, context, quantity, as_of)
        else:
            unit = self._resolve_b2c(product, context, quantity, list(custom_discounts), as_of)

        logger.debug(
            "Resolved %s x%d for %s/%s: %.2f (%s)",
            product.id, quantity, context.customer_type, context.pricing_tier,
            unit.price, ", ".join(unit.applied_rules) or "no discount",
        )
        return unit

    def _resolve_b2c(
        self,
        product: Product,
        context: CustomerContext,
        quantity: int,
        custom_discounts: list,
        as_of: datetime,
    ) -> UnitPrice:
        original_price = float(product.price)
        unit = UnitPrice(
            price=original_price,
            original_price=original_price,
            mrp=float(product.list_price),
            customer_type=context.customer_type,
            pricing_tier=context.pricing_tier,
            source="B2C",
        )
        unit.add_trace("Base Price", f"Selling price for {product.id}", f"{original_price:.2f}")

        current_price = original_price
        # Custom discounts all price from the running price reached before the first of them
        custom_base = None
        custom_label = None
        for rule in self.rule_matcher.find_matching_rules(
            product, context, quantity, as_of, self._usable_custom_discounts(custom_discounts)
        ):
            if rule.kind == KIND_CUSTOM and custom_base is None:
                custom_base = current_price
            base = custom_base if rule.kind == KIND_CUSTOM else current_price
            try:
                new_price, message = candidate_price(rule, original_price, base, quantity)
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed rule %s: %s", rule.rule_id, e)
                continue

            if rule.stacks:
                current_price = new_price
                unit.applied_rules.append(rule.name)
                unit.add_trace("Rule Applied", message, f"{current_price:.2f}")
            elif new_price < current_price:
                current_price = new_price
                if rule.kind in ORIGINAL_PRICE_KINDS:
                    # Scope discounts replace the running label set
                    unit.applied_rules = [rule.name]
                else:
                    if custom_label is not None:
                        unit.applied_rules.remove(custom_label)
                    custom_label = rule.name
                    unit.applied_rules.append(rule.name)
                unit.add_trace("Rule Applied", message, f"{current_price:.2f}")
            else:
                unit.add_trace("Rule Skipped", f"{message} does not beat {current_price:.2f}")

        unit.price = self._finalize_price(unit, current_price, original_price)
        return unit

    def _resolve_b2b(
        self,
        product: Product,
        context: CustomerContext,
        quantity: int,
        as_of: datetime,
    ) -> UnitPrice:
        original_price = float(product.price)
        tier = canonical_name(B2B_TIER_DISCOUNTS, context.b2b_tier) or DEFAULT_B2B_TIER
        unit = UnitPrice(
            price=original_price,
            original_price=original_price,
            mrp=float(product.list_price),
            customer_type=context.customer_type,
            pricing_tier=tier,
            source="",
        )
        unit.add_trace("Base Price", f"Selling price for {product.id}", f"{original_price:.2f}")

        row = self._find_product_pricing(product, tier, quantity, as_of)
        if row is not None:
            price = float(row.price)
            unit.source = "B2B Contract"
            unit.applied_rules.append(f"B2B {tier} Contract Price")
            unit.add_trace("Price Resolution", f"Using {tier} contract price for qty {quantity}", f"{price:.2f}")
        else:
            percent = B2B_TIER_DISCOUNTS.get(tier, DEFAULT_B2B_DISCOUNT)
            price = original_price * (1 - percent / 100.0)
            unit.source = "B2B Tier"
            unit.applied_rules.append(f"B2B {tier} ({format_percent(percent)})")
            unit.add_trace("Price Resolution", f"No {tier} contract price, using {format_percent(percent)} tier discount", f"{price:.2f}")

        if price > original_price:
            unit.add_trace("B2B Ceiling", f"{price:.2f} exceeds the B2C price", f"{original_price:.2f}")
            price = original_price

        unit.price = self._finalize_price(unit, price, original_price)
        return unit

    def _find_product_pricing(
        self,
        product: Product,
        tier: str,
        quantity: int,
        as_of: datetime,
    ) -> Optional[ProductPricing]:
        """First active row for (product, tier) whose quantity range and window cover the request."""
        for row in self.catalog.product_pricing:
            try:
                if str(row.product_id) != str(product.id):
                    continue
                if row.customer_type != CUSTOMER_B2B or not row.is_active:
                    continue
                if str(row.category).lower() != tier.lower():
                    continue
                if quantity < (row.min_quantity or 1):
                    continue
                if row.max_quantity is not None and quantity > row.max_quantity:
                    continue
                if not within_window(as_of, row.valid_from, row.valid_to):
                    continue
                float(row.price)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed product pricing row for %s: %s", product.id, e)
                continue
            return row
        return None

    def _finalize_price(self, unit: UnitPrice, price: float, original_price: float) -> float:
        """Apply the margin floor, then round to 2 decimals."""
        floor = original_price * self.settings.margin_floor_ratio
        if price < floor:
            unit.floor_applied = True
            unit.add_trace("Margin Floor", f"Raised to {format_percent(self.settings.margin_floor_ratio * 100)} of original", f"{floor:.2f}")
            price = floor

        rounded = round_money(max(price, 0.0))
        if rounded < floor:
            unit.floor_applied = True
            rounded = ceil_money(floor)
        unit.add_trace("Rounding", "Rounded to 2 decimals", f"{rounded:.2f}")
        return rounded

    @staticmethod
    def _usable_custom_discounts(custom_discounts: Iterable) -> list[CustomDiscount]:
        """Convert raw records to CustomDiscount and drop the ones that cannot be parsed."""
        usable = []
        for discount in custom_discounts:
            if isinstance(discount, CustomDiscount):
                usable.append(discount)
                continue
            try:
                usable.append(CustomDiscount.from_record(dict(discount)))
            except (MalformedRecordError, TypeError, ValueError) as e:
                logger.warning("Skipping custom discount: %s", e)
        return usable

    # ------------------------------------------------------------------
    # Coupons and offers
    # ------------------------------------------------------------------

    def validate_coupon(
        self,
        coupon: Optional[Coupon],
        lines: Iterable,
        subtotal: float,
        as_of: Optional[datetime] = None,
        user_usage_count: int = 0,
    ) -> bool:
        """True when the coupon can be used against these lines right now."""
        return self.coupon_validator.is_valid(coupon, lines, subtotal, as_of, user_usage_count)

    def compute_coupon_discount(self, coupon: Coupon, lines: Iterable, subtotal: float) -> float:
        """Coupon discount against its applicable subtotal."""
        return self.coupon_validator.compute_discount(coupon, lines, subtotal)

    def select_auto_offer(
        self,
        offers: Optional[Iterable[AutoOffer]],
        lines: Iterable,
        subtotal: float,
        as_of: Optional[datetime] = None,
        context: Optional[CustomerContext] = None,
    ) -> Optional[OfferSelection]:
        """Best auto-offer for the cart; `offers=None` uses the catalog's."""
        if offers is None:
            offers = self.catalog.auto_offers
        return self.offer_selector.select(offers, lines, subtotal, as_of, context)

    # ------------------------------------------------------------------
    # Cart pricing
    # ------------------------------------------------------------------

    def price_lines(
        self,
        lines: Iterable[CartLine],
        context: CustomerContext,
        as_of: Optional[datetime] = None,
        custom_discounts: Optional[Iterable[CustomDiscount]] = None,
    ) -> list[LineItem]:
        """Resolve unit prices for every cart line with a positive quantity."""
        as_of = as_of or datetime.now()
        if custom_discounts is not None:
            custom_discounts = list(custom_discounts)

        priced = []
        for line in lines:
            if line.quantity < 1:
                logger.warning("Ignoring cart line %s with quantity %s", line.product.id, line.quantity)
                continue
            unit = self.resolve_unit_price(line.product, context, line.quantity, custom_discounts, as_of)
            item = LineItem(
                product=line.product,
                quantity=line.quantity,
                unit_price=unit.price,
                extended_price=round_money(unit.price * line.quantity),
                source=unit.source,
                rules_applied=list(unit.applied_rules),
                trace=list(unit.trace),
            )
            item.trace.append(TraceStep("Extension", f"Quantity {line.quantity} × {unit.price:.2f}", f"{item.extended_price:.2f}"))
            if unit.floor_applied:
                item.add_warning(f"Margin floor reached for {line.product.id}")
            priced.append(item)
        return priced

    def compute_cart_pricing(
        self,
        lines: Iterable[CartLine],
        context: CustomerContext,
        applied_coupon_code: Optional[str] = None,
        as_of: Optional[datetime] = None,
        user_usage_count: int = 0,
        custom_discounts: Optional[Iterable[CustomDiscount]] = None,
    ) -> PricingResult:
        """
        Price a cart from scratch.

        Args:
            lines: Cart lines (product + quantity)
            context: Resolved customer context
            applied_coupon_code: Code of the coupon currently applied, if any
            as_of: Pricing moment; defaults to now
            user_usage_count: How often this user already redeemed the applied coupon
            custom_discounts: Named discount rules; defaults to the catalog's

        Returns:
            PricingResult. An applied coupon that no longer validates is cleared
            and reported in `notices`.
        """
        from ..policy.coupon_validator import INVALID_COUPON_MESSAGE

        as_of = as_of or datetime.now()
        lines = list(lines)
        priced = self.price_lines(lines, context, as_of, custom_discounts)

        subtotal = round_money(sum(item.extended_price for item in priced))
        result = PricingResult(
            subtotal=subtotal,
            gst_amount=0.0,
            auto_offer=None,
            auto_offer_discount=0.0,
            applied_coupon=None,
            coupon_discount=0.0,
            total_discount=0.0,
            final_total=0.0,
            can_combine_discounts=self.settings.can_combine_discounts,
            customer_type=context.customer_type,
            pricing_tier=context.pricing_tier,
            lines=priced,
            mrp_total=round_money(sum(item.product.list_price * item.quantity for item in priced)),
            original_total=round_money(sum(item.product.price * item.quantity for item in priced)),
        )
        result.add_trace("Customer", f"{context.customer_type} pricing", context.pricing_tier or None)
        result.add_trace("Subtotal", f"{len(priced)} line(s) at resolved unit prices", f"{subtotal:.2f}")
        for item in priced:
            for warning in item.warnings:
                result.add_warning(warning)

        # Auto-offer
        selection = self.select_auto_offer(None, priced, subtotal, as_of, context)
        if selection is not None:
            result.auto_offer = selection.offer
            result.auto_offer_discount = selection.discount
            result.add_trace("Auto Offer", selection.offer.title, f"-{selection.discount:.2f}")
        else:
            result.add_trace("Auto Offer", "No offer qualifies")

        # Coupon re-validation
        if applied_coupon_code:
            coupon = self.catalog.find_coupon(applied_coupon_code)
            check = self.coupon_validator.check(coupon, priced, subtotal, as_of, user_usage_count)
            if check.valid:
                result.applied_coupon = coupon
                result.coupon_discount = self.coupon_validator.compute_discount(coupon, priced, subtotal)
                result.add_trace("Coupon", coupon.code, f"-{result.coupon_discount:.2f}")
            else:
                logger.info("Cleared coupon %s: %s", applied_coupon_code, check.reason)
                result.notices.append(INVALID_COUPON_MESSAGE)
                result.add_trace("Coupon", f"{applied_coupon_code.upper()} removed", check.reason)

        # Combination policy
        if result.can_combine_discounts:
            total_discount = result.auto_offer_discount + result.coupon_discount
        elif result.auto_offer_discount >= result.coupon_discount:
            if result.applied_coupon is not None and result.coupon_discount > 0:
                result.notices.append(
                    f"Coupon {result.applied_coupon.code} cannot be combined with {result.auto_offer.title}"
                )
            result.coupon_discount = 0.0
            total_discount = result.auto_offer_discount
        else:
            result.auto_offer_discount = 0.0
            total_discount = result.coupon_discount
        result.total_discount = round_money(total_discount)

        taxable = max(0.0, subtotal - result.total_discount)
        result.gst_amount = round_money(taxable * self.settings.gst_rate)
        result.final_total = max(0.0, round_money(subtotal - result.total_discount + result.gst_amount))
        result.add_trace("GST", f"{format_percent(self.settings.gst_rate * 100)} on {taxable:.2f}", f"{result.gst_amount:.2f}")
        result.add_trace("Final Total", "Subtotal - discounts + GST", f"{result.final_total:.2f}")

        result.available_coupons = self.coupon_validator.available_coupons(
            self.catalog.coupons,
            priced,
            subtotal,
            as_of,
            exclude_code=result.applied_coupon.code if result.applied_coupon else None,
        )
        return result
