"""
Storefront Pricing Package

Discount and pricing resolution engine for the storefront cart.
Resolves Customer → Unit Price → Offer/Coupon → GST → Final Total for every cart.
"""

__version__ = "1.0.0"
