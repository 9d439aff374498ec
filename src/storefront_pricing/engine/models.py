"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation. Records read
from the backing store are converted with the `from_record` classmethods,
which raise MalformedRecordError for rows that cannot be priced.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Optional

from ..exceptions import MalformedRecordError
from .records import (
    is_blank,
    parse_bool,
    parse_datetime,
    parse_float,
    parse_list,
    parse_optional_float,
    parse_optional_int,
    parse_optional_str,
)

CUSTOMER_B2C = 'B2C'
CUSTOMER_B2B = 'B2B'

# Closed set of unit-price rule kinds
KIND_CUSTOMER = 'customer_category'
KIND_CATEGORY = 'category'
KIND_BRAND = 'brand'
KIND_SEASONAL = 'seasonal'
KIND_BULK = 'bulk'
KIND_CUSTOM = 'custom'

SCOPE_KINDS = (KIND_CATEGORY, KIND_BRAND, KIND_SEASONAL)

CUSTOM_DISCOUNT_TYPES = {'percentage', 'fixed', 'buy_one_get_one'}
COUPON_TYPES = {'percentage', 'fixed'}

STATUS_ACTIVE = 'active'
STATUS_INACTIVE = 'inactive'


def _pick(record: dict, *keys: str) -> Any:
    """First non-blank value among several column aliases."""
    for key in keys:
        value = record.get(key)
        if not is_blank(value):
            return value
    return None


def _to_plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return [_to_plain(v) for v in value]
    if hasattr(value, '__dataclass_fields__'):
        return {f.name: _to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, list):
        return [_to_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class Product:
    """A catalog product. Immutable for the duration of a pricing run."""
    id: str
    price: float
    mrp: Optional[float] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    name: str = ""

    @property
    def list_price(self) -> float:
        """MRP, falling back to the selling price."""
        return self.mrp if self.mrp is not None else self.price

    @classmethod
    def from_record(cls, record: dict) -> 'Product':
        product_id = parse_optional_str(_pick(record, 'id', 'product_id'))
        try:
            if not product_id:
                raise ValueError("id is required")
            price = parse_float(record.get('price'), 'price')
            if price < 0:
                raise ValueError("price must not be negative")
            return cls(
                id=product_id,
                price=price,
                mrp=parse_optional_float(record.get('mrp'), 'mrp'),
                category=parse_optional_str(record.get('category')),
                brand=parse_optional_str(record.get('brand')),
                name=parse_optional_str(record.get('name')) or product_id,
            )
        except ValueError as e:
            raise MalformedRecordError('product', str(e), product_id) from None


@dataclass(frozen=True)
class CustomerContext:
    """Commercial classification of the customer being priced."""
    customer_type: str = CUSTOMER_B2C
    category: Optional[str] = 'Normal'
    b2b_tier: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def is_b2b(self) -> bool:
        return self.customer_type == CUSTOMER_B2B

    @property
    def pricing_tier(self) -> str:
        """B2B tier for business customers, customer category otherwise."""
        return (self.b2b_tier if self.is_b2b else self.category) or ''


@dataclass(frozen=True)
class ScopeDiscount:
    """A pre-seeded category, brand or seasonal percentage discount."""
    kind: str
    name: str
    percentage: float
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @classmethod
    def from_record(cls, kind: str, record: dict) -> 'ScopeDiscount':
        name = parse_optional_str(_pick(record, 'name', 'category', 'brand', 'season'))
        try:
            if kind not in SCOPE_KINDS:
                raise ValueError(f"kind must be one of {SCOPE_KINDS}")
            if not name:
                raise ValueError("name is required")
            percentage = parse_float(_pick(record, 'percentage', 'discount_percentage'), 'percentage')
            if not 0 <= percentage <= 100:
                raise ValueError("percentage must be between 0 and 100")
            start = parse_datetime(record.get('start_date'), 'start_date')
            end = parse_datetime(record.get('end_date'), 'end_date', end_of_day=True)
            if kind == KIND_SEASONAL and (start is None or end is None):
                raise ValueError("seasonal discounts need start_date and end_date")
            return cls(kind=kind, name=name, percentage=percentage, start_date=start, end_date=end)
        except ValueError as e:
            raise MalformedRecordError(f'{kind} discount', str(e), name) from None


@dataclass(frozen=True)
class CustomDiscount:
    """A named, time-boxed discount rule applied on top of the running price."""
    id: str
    name: str
    type: str
    value: float
    min_quantity: Optional[int] = None
    max_discount_percent: Optional[float] = None  # cap on the amount, % of original price
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    applicable_categories: tuple[str, ...] = ()
    applicable_brands: tuple[str, ...] = ()

    @classmethod
    def from_record(cls, record: dict) -> 'CustomDiscount':
        discount_id = parse_optional_str(_pick(record, 'id', 'name'))
        try:
            if not discount_id:
                raise ValueError("id is required")
            discount_type = parse_optional_str(record.get('type'))
            if discount_type not in CUSTOM_DISCOUNT_TYPES:
                raise ValueError(f"type must be one of {sorted(CUSTOM_DISCOUNT_TYPES)}")
            value = parse_float(record.get('value'), 'value')
            if value < 0:
                raise ValueError("value must not be negative")
            return cls(
                id=discount_id,
                name=parse_optional_str(record.get('name')) or discount_id,
                type=discount_type,
                value=value,
                min_quantity=parse_optional_int(_pick(record, 'min_quantity', 'minQuantity'), 'min_quantity'),
                max_discount_percent=parse_optional_float(
                    _pick(record, 'max_discount_percent', 'max_discount_percent_of_original', 'max_discount'),
                    'max_discount_percent',
                ),
                start_date=parse_datetime(record.get('start_date'), 'start_date'),
                end_date=parse_datetime(record.get('end_date'), 'end_date', end_of_day=True),
                applicable_categories=parse_list(record.get('applicable_categories')),
                applicable_brands=parse_list(record.get('applicable_brands')),
            )
        except ValueError as e:
            raise MalformedRecordError('custom discount', str(e), discount_id) from None


def _scope_fields(record: dict) -> dict:
    return {
        'applicable_category': parse_optional_str(record.get('applicable_category')),
        'applicable_product_id': parse_optional_str(record.get('applicable_product_id')),
    }


@dataclass(frozen=True)
class Coupon:
    """A manually entered discount code."""
    id: str
    code: str
    type: str
    value: float
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    min_purchase: Optional[float] = None
    usage_limit: int = 0
    usage_count: int = 0
    per_user_limit: int = 0
    status: str = STATUS_ACTIVE
    applicable_category: Optional[str] = None
    applicable_product_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @classmethod
    def from_record(cls, record: dict) -> 'Coupon':
        code = parse_optional_str(record.get('code'))
        coupon_id = parse_optional_str(record.get('id')) or code
        try:
            if not code:
                raise ValueError("code is required")
            coupon_type = parse_optional_str(record.get('type'))
            if coupon_type not in COUPON_TYPES:
                raise ValueError(f"type must be one of {sorted(COUPON_TYPES)}")
            value = parse_float(record.get('value'), 'value')
            if value < 0:
                raise ValueError("value must not be negative")
            status = (parse_optional_str(record.get('status')) or STATUS_ACTIVE).lower()
            return cls(
                id=coupon_id,
                code=code.upper(),
                type=coupon_type,
                value=value,
                start_date=parse_datetime(record.get('start_date'), 'start_date'),
                expiry_date=parse_datetime(record.get('expiry_date'), 'expiry_date', end_of_day=True),
                min_purchase=parse_optional_float(record.get('min_purchase'), 'min_purchase'),
                usage_limit=parse_optional_int(record.get('usage_limit'), 'usage_limit') or 0,
                usage_count=parse_optional_int(_pick(record, 'usage_count', 'used_count'), 'usage_count') or 0,
                per_user_limit=parse_optional_int(record.get('per_user_limit'), 'per_user_limit') or 0,
                status=status,
                **_scope_fields(record),
            )
        except ValueError as e:
            raise MalformedRecordError('coupon', str(e), coupon_id) from None


@dataclass(frozen=True)
class AutoOffer:
    """
    An always-on discount applied without a code.

    `priority` is a display hint only; selection is by discount amount.
    """
    id: str
    title: str
    type: str
    value: float
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    min_purchase: Optional[float] = None
    is_active: bool = True
    applicable_category: Optional[str] = None
    applicable_product_id: Optional[str] = None
    priority: int = 0
    max_discount_amount: Optional[float] = None
    customer_categories: tuple[str, ...] = ()
    description: str = ""

    @classmethod
    def from_record(cls, record: dict) -> 'AutoOffer':
        offer_id = parse_optional_str(_pick(record, 'id', 'title', 'name'))
        try:
            if not offer_id:
                raise ValueError("id is required")

            offer_type = parse_optional_str(record.get('type'))
            raw_value = record.get('value')
            # Offer rows may carry discount_percentage / discount_amount instead of type/value
            if offer_type not in COUPON_TYPES:
                if not is_blank(record.get('discount_percentage')):
                    offer_type, raw_value = 'percentage', record.get('discount_percentage')
                elif not is_blank(record.get('discount_amount')):
                    offer_type, raw_value = 'fixed', record.get('discount_amount')
                else:
                    raise ValueError(f"type must be one of {sorted(COUPON_TYPES)}")
            value = parse_float(raw_value, 'value')
            if value < 0:
                raise ValueError("value must not be negative")

            if not is_blank(record.get('is_active')):
                active = parse_bool(record.get('is_active'))
            else:
                active = (parse_optional_str(record.get('status')) or STATUS_ACTIVE).lower() == STATUS_ACTIVE

            return cls(
                id=offer_id,
                title=parse_optional_str(_pick(record, 'title', 'name')) or offer_id,
                type=offer_type,
                value=value,
                start_date=parse_datetime(_pick(record, 'start_date', 'valid_from'), 'start_date'),
                expiry_date=parse_datetime(
                    _pick(record, 'expiry_date', 'valid_to'), 'expiry_date', end_of_day=True
                ),
                min_purchase=parse_optional_float(
                    _pick(record, 'min_purchase', 'minimum_purchase', 'minimum_order_value'), 'min_purchase'
                ),
                is_active=active,
                priority=parse_optional_int(record.get('priority'), 'priority') or 0,
                max_discount_amount=parse_optional_float(record.get('max_discount_amount'), 'max_discount_amount'),
                customer_categories=parse_list(_pick(record, 'customer_categories', 'customer_category')),
                description=parse_optional_str(record.get('description')) or "",
                **_scope_fields(record),
            )
        except ValueError as e:
            raise MalformedRecordError('auto offer', str(e), offer_id) from None


@dataclass(frozen=True)
class ProductPricing:
    """One B2B tier price row for a product."""
    product_id: str
    category: str
    price: float
    customer_type: str = CUSTOMER_B2B
    min_quantity: Optional[int] = None
    max_quantity: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    is_active: bool = True

    @classmethod
    def from_record(cls, record: dict) -> 'ProductPricing':
        product_id = parse_optional_str(record.get('product_id'))
        try:
            if not product_id:
                raise ValueError("product_id is required")
            category = parse_optional_str(_pick(record, 'category', 'customer_category'))
            if not category:
                raise ValueError("category is required")
            price = parse_float(record.get('price'), 'price')
            if price < 0:
                raise ValueError("price must not be negative")
            return cls(
                product_id=product_id,
                category=category,
                price=price,
                customer_type=(parse_optional_str(record.get('customer_type')) or CUSTOMER_B2B).upper(),
                min_quantity=parse_optional_int(record.get('min_quantity'), 'min_quantity'),
                max_quantity=parse_optional_int(record.get('max_quantity'), 'max_quantity'),
                valid_from=parse_datetime(record.get('valid_from'), 'valid_from'),
                valid_to=parse_datetime(record.get('valid_to'), 'valid_to', end_of_day=True),
                is_active=parse_bool(record.get('is_active'), default=True),
            )
        except ValueError as e:
            raise MalformedRecordError('product pricing', str(e), product_id) from None


@dataclass(frozen=True)
class CartLine:
    """A product and the requested quantity."""
    product: Product
    quantity: int

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


@dataclass
class TraceStep:
    """A single step in the pricing resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class UnitPrice:
    """Resolved per-unit price for one product and customer."""
    price: float
    original_price: float
    mrp: float
    customer_type: str
    pricing_tier: str
    source: str  # "B2C", "B2B Contract" or "B2B Tier"
    applied_rules: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)
    floor_applied: bool = False  # price was raised to the margin floor

    @property
    def discount_amount(self) -> float:
        return max(0.0, round(self.original_price - self.price, 2))

    @property
    def discount_percentage(self) -> int:
        if self.original_price <= 0:
            return 0
        return round(self.discount_amount / self.original_price * 100)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace for this price."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def to_dict(self) -> dict:
        data = _to_plain(self)
        data['discount_amount'] = self.discount_amount
        data['discount_percentage'] = self.discount_percentage
        return data


@dataclass
class LineItem:
    """A single priced line in a cart result."""
    product: Product
    quantity: int
    unit_price: float
    extended_price: float
    source: str
    rules_applied: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    @property
    def line_total(self) -> float:
        return self.extended_price

    def add_warning(self, warning: str):
        """Add a warning for this line item."""
        self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)


@dataclass(frozen=True)
class OfferSelection:
    """The winning auto-offer and the discount it yields."""
    offer: AutoOffer
    discount: float


@dataclass(frozen=True)
class CouponCheck:
    """Outcome of validating a coupon against a cart."""
    valid: bool
    reason: Optional[str] = None


@dataclass
class PricingResult:
    """Complete pricing breakdown for a cart. Derived, never stored."""
    subtotal: float
    gst_amount: float
    auto_offer: Optional[AutoOffer]
    auto_offer_discount: float
    applied_coupon: Optional[Coupon]
    coupon_discount: float
    total_discount: float
    final_total: float
    can_combine_discounts: bool
    available_coupons: list[Coupon] = field(default_factory=list)

    customer_type: str = CUSTOMER_B2C
    pricing_tier: str = ''
    lines: list[LineItem] = field(default_factory=list)
    mrp_total: float = 0.0
    original_total: float = 0.0
    notices: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    @property
    def coupon_state(self) -> str:
        return 'CouponApplied' if self.applied_coupon is not None else 'NoCoupon'

    @property
    def savings(self) -> float:
        """Everything the customer saves against Σ product.price × qty."""
        return max(0.0, round(self.original_total - self.subtotal + self.total_discount, 2))

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the result-level trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a result-level warning."""
        if warning not in self.warnings:
            self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable result trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)

    def to_contract_dict(self) -> dict:
        """The stable cart/checkout contract. Key names must not change."""
        return {
            "subtotal": self.subtotal,
            "gstAmount": self.gst_amount,
            "autoOffer": _to_plain(self.auto_offer) if self.auto_offer else None,
            "autoOfferDiscount": self.auto_offer_discount,
            "appliedCoupon": _to_plain(self.applied_coupon) if self.applied_coupon else None,
            "couponDiscount": self.coupon_discount,
            "totalDiscount": self.total_discount,
            "finalTotal": self.final_total,
            "canCombineDiscounts": self.can_combine_discounts,
            "availableCoupons": [_to_plain(c) for c in self.available_coupons],
        }
