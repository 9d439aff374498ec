"""Engine subpackage - core pricing logic and resolution."""
from .catalog import DiscountCatalog
from .models import (
    AutoOffer,
    CartLine,
    Coupon,
    CustomDiscount,
    CustomerContext,
    LineItem,
    PricingResult,
    Product,
    ProductPricing,
    ScopeDiscount,
    UnitPrice,
)
from .pricing_engine import PricingEngine

__all__ = [
    'PricingEngine', 'DiscountCatalog', 'Product', 'CustomerContext', 'CartLine',
    'Coupon', 'AutoOffer', 'CustomDiscount', 'ProductPricing', 'ScopeDiscount',
    'UnitPrice', 'LineItem', 'PricingResult',
]
