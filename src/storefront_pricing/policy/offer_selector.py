"""
Offer Selector - Picks the single auto-applied offer for a cart.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from ..engine.models import AutoOffer, CustomerContext, OfferSelection
from ..engine.records import round_money, within_window
from .scope import applicable_subtotal, compute_scoped_discount, has_scope_match

logger = logging.getLogger(__name__)


class OfferSelector:
    """
    Selects at most one auto-offer per cart.

    Offers never stack with each other. The winner is the offer with the
    strictly greatest discount amount; ties keep the first offer seen, so
    catalog order decides. `priority` is not consulted.
    """

    def is_applicable(
        self,
        offer: AutoOffer,
        lines: list,
        cart_subtotal: float,
        as_of: datetime,
        context: Optional[CustomerContext] = None,
    ) -> bool:
        """Active, in window, targeted at this customer, in scope, above minimum purchase."""
        if not offer.is_active:
            return False

        if not within_window(as_of, offer.start_date, offer.expiry_date):
            return False

        if offer.customer_categories and context is not None:
            wanted = {c.lower() for c in offer.customer_categories}
            if context.pricing_tier.lower() not in wanted:
                return False

        if not has_scope_match(offer, lines):
            return False

        if offer.min_purchase is not None:
            if applicable_subtotal(offer, lines, cart_subtotal) < float(offer.min_purchase):
                return False

        return True

    def compute_discount(self, offer: AutoOffer, lines: list, cart_subtotal: float) -> float:
        """Scoped discount, then the offer's optional max_discount_amount cap."""
        discount = compute_scoped_discount(offer, lines, cart_subtotal)
        if offer.max_discount_amount is not None:
            discount = min(discount, float(offer.max_discount_amount))
        return round_money(discount)

    def select(
        self,
        offers: Iterable[AutoOffer],
        lines: Iterable,
        cart_subtotal: float,
        as_of: Optional[datetime] = None,
        context: Optional[CustomerContext] = None,
    ) -> Optional[OfferSelection]:
        """Return the best offer and its discount, or None when nothing yields a discount."""
        as_of = as_of or datetime.now()
        lines = list(lines)

        best: Optional[OfferSelection] = None
        for offer in offers:
            try:
                if not self.is_applicable(offer, lines, cart_subtotal, as_of, context):
                    continue
                discount = self.compute_discount(offer, lines, cart_subtotal)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed offer %s: %s", getattr(offer, 'id', '?'), e)
                continue

            if discount > (best.discount if best else 0.0):
                best = OfferSelection(offer=offer, discount=discount)

        return best
