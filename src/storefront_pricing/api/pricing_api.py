"""
Pricing API - FastAPI router for unit, cart, coupon and offer pricing.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ..engine import CartLine, PricingEngine, Product
from ..engine.records import round_money
from ..exceptions import GSTINVerificationError
from ..policy.customer_resolver import resolve_customer_context
from ..policy.gstin import upgrade_to_b2b, verify_gstin
from .state import get_engine

router = APIRouter(tags=["pricing"])


# Pydantic models for API
class ProductIn(BaseModel):
    """Inline product, for pricing items not in the catalog."""
    id: str
    price: float
    mrp: Optional[float] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    name: str = ""


class CartLineIn(BaseModel):
    """A cart line: catalog product id or inline product, plus quantity."""
    product_id: Optional[str] = None
    product: Optional[ProductIn] = None
    quantity: int = Field(default=1, ge=1)


class UnitPriceRequest(BaseModel):
    product_id: Optional[str] = None
    product: Optional[ProductIn] = None
    profile: Optional[dict] = None
    quantity: int = Field(default=1, ge=1)
    as_of: Optional[datetime] = None


class CartPricingRequest(BaseModel):
    lines: list[CartLineIn]
    profile: Optional[dict] = None
    coupon_code: Optional[str] = None
    user_usage_count: int = Field(default=0, ge=0)
    as_of: Optional[datetime] = None


class CouponValidateRequest(BaseModel):
    code: str
    lines: list[CartLineIn]
    profile: Optional[dict] = None
    user_usage_count: int = Field(default=0, ge=0)
    as_of: Optional[datetime] = None


class CouponValidateResponse(BaseModel):
    code: str
    valid: bool
    reason: Optional[str]
    discount: float
    subtotal: float


class OfferRequest(BaseModel):
    lines: list[CartLineIn]
    profile: Optional[dict] = None
    as_of: Optional[datetime] = None


class ProfileRequest(BaseModel):
    profile: Optional[dict] = None


class GSTINRequest(BaseModel):
    """GSTIN check; pass `profile` to get the upgraded B2B profile back."""
    gstin: str
    business_name: str = ""
    business_address: Optional[str] = None
    b2b_category: Optional[str] = None
    profile: Optional[dict] = None


def _resolve_product(engine: PricingEngine, product_id: Optional[str], product: Optional[ProductIn]) -> Product:
    """Inline product wins over a catalog lookup."""
    if product is not None:
        return Product.from_record(product.model_dump())
    if not product_id:
        raise HTTPException(status_code=422, detail="product_id or product is required")
    found = engine.catalog.get_product(product_id)
    if found is None:
        raise HTTPException(status_code=404, detail=f"Product '{product_id}' not found")
    return found


def _cart_lines(engine: PricingEngine, lines: list[CartLineIn]) -> list[CartLine]:
    return [
        CartLine(product=_resolve_product(engine, line.product_id, line.product), quantity=line.quantity)
        for line in lines
    ]


# Endpoints

@router.post("/pricing/unit-price")
async def unit_price(req: UnitPriceRequest, engine: PricingEngine = Depends(get_engine)):
    """Resolve the per-unit price for one product and customer."""
    product = _resolve_product(engine, req.product_id, req.product)
    context = resolve_customer_context(req.profile)
    unit = engine.resolve_unit_price(product, context, req.quantity, as_of=req.as_of)
    return unit.to_dict()


@router.post("/cart/pricing")
async def cart_pricing(req: CartPricingRequest, engine: PricingEngine = Depends(get_engine)):
    """Price a cart from scratch; returns the checkout contract plus display extras."""
    lines = _cart_lines(engine, req.lines)
    context = resolve_customer_context(req.profile)
    result = engine.compute_cart_pricing(
        lines,
        context,
        applied_coupon_code=req.coupon_code,
        as_of=req.as_of,
        user_usage_count=req.user_usage_count,
    )

    response = result.to_contract_dict()
    response.update({
        "couponState": result.coupon_state,
        "customerType": result.customer_type,
        "pricingTier": result.pricing_tier,
        "mrpTotal": result.mrp_total,
        "originalTotal": result.original_total,
        "savings": result.savings,
        "notices": result.notices,
        "warnings": result.warnings,
        "lines": [
            {
                "productId": item.product.id,
                "name": item.product.name,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
                "extendedPrice": item.extended_price,
                "source": item.source,
                "rulesApplied": item.rules_applied,
                "trace": item.get_trace_text(),
            }
            for item in result.lines
        ],
        "trace": result.get_trace_text(),
    })
    return jsonable_encoder(response)


@router.post("/coupons/validate", response_model=CouponValidateResponse)
async def validate_coupon(req: CouponValidateRequest, engine: PricingEngine = Depends(get_engine)):
    """Check a coupon code against a cart without applying it."""
    context = resolve_customer_context(req.profile)
    priced = engine.price_lines(_cart_lines(engine, req.lines), context, req.as_of)
    subtotal = round_money(sum(item.extended_price for item in priced))

    coupon = engine.catalog.find_coupon(req.code)
    check = engine.coupon_validator.check(coupon, priced, subtotal, req.as_of, req.user_usage_count)
    discount = engine.compute_coupon_discount(coupon, priced, subtotal) if check.valid else 0.0
    return CouponValidateResponse(
        code=req.code.strip().upper(),
        valid=check.valid,
        reason=check.reason,
        discount=discount,
        subtotal=subtotal,
    )


@router.post("/offers/best")
async def best_offer(req: OfferRequest, engine: PricingEngine = Depends(get_engine)):
    """The auto-offer the cart would get, or null."""
    context = resolve_customer_context(req.profile)
    priced = engine.price_lines(_cart_lines(engine, req.lines), context, req.as_of)
    subtotal = round_money(sum(item.extended_price for item in priced))

    selection = engine.select_auto_offer(None, priced, subtotal, req.as_of, context)
    if selection is None:
        return {"offer": None, "discount": 0.0, "subtotal": subtotal}
    return jsonable_encoder({"offer": selection.offer, "discount": selection.discount, "subtotal": subtotal})


@router.post("/customers/context")
async def customer_context(req: ProfileRequest):
    """Resolve the commercial context for a profile record."""
    context = resolve_customer_context(req.profile)
    return {
        "customer_type": context.customer_type,
        "category": context.category,
        "b2b_tier": context.b2b_tier,
        "pricing_tier": context.pricing_tier,
        "user_id": context.user_id,
    }


@router.post("/customers/verify-gstin")
async def verify_customer_gstin(req: GSTINRequest):
    """Verify a GSTIN; with a profile, also return the upgraded B2B profile."""
    verification = verify_gstin(req.gstin, req.business_name)
    response = {"valid": verification.valid, "error": verification.error, "details": verification.details}

    if req.profile is not None:
        try:
            response["profile"] = upgrade_to_b2b(req.profile, {
                "gstin": req.gstin,
                "business_name": req.business_name,
                "business_address": req.business_address,
                "b2b_category": req.b2b_category,
            })
        except GSTINVerificationError as e:
            raise HTTPException(status_code=400, detail=e.reason)
    return response
