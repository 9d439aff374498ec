"""
In-memory snapshot of the discount catalog handed to the pricing engine.
"""
from dataclasses import dataclass, field
from typing import Optional

from .models import AutoOffer, Coupon, CustomDiscount, Product, ProductPricing, ScopeDiscount


@dataclass
class DiscountCatalog:
    """
    Everything the engine reads, already fetched from the backing store.

    An empty catalog is valid: the engine simply finds no matching rules.
    """
    products: list[Product] = field(default_factory=list)
    coupons: list[Coupon] = field(default_factory=list)
    auto_offers: list[AutoOffer] = field(default_factory=list)
    custom_discounts: list[CustomDiscount] = field(default_factory=list)
    product_pricing: list[ProductPricing] = field(default_factory=list)
    category_discounts: list[ScopeDiscount] = field(default_factory=list)
    brand_discounts: list[ScopeDiscount] = field(default_factory=list)
    seasonal_discounts: list[ScopeDiscount] = field(default_factory=list)
    load_errors: list[str] = field(default_factory=list)

    def get_product(self, product_id: str) -> Optional[Product]:
        """First product with this id."""
        product_id = str(product_id).strip()
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def find_coupon(self, code: Optional[str]) -> Optional[Coupon]:
        """Case-insensitive coupon lookup by code."""
        if not code:
            return None
        code = code.strip().upper()
        for coupon in self.coupons:
            if coupon.code == code:
                return coupon
        return None

    def counts(self) -> dict:
        return {
            'products': len(self.products),
            'coupons': len(self.coupons),
            'auto_offers': len(self.auto_offers),
            'custom_discounts': len(self.custom_discounts),
            'product_pricing': len(self.product_pricing),
            'category_discounts': len(self.category_discounts),
            'brand_discounts': len(self.brand_discounts),
            'seasonal_discounts': len(self.seasonal_discounts),
        }
