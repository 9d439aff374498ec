"""
GSTIN verification and B2B upgrade.

Verification is format-only: the 15-character GSTIN pattern plus a known
state-code prefix. It fails closed; anything unrecognised is rejected with a
reason. Persisting the upgraded profile is the caller's job.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..config.settings import DEFAULT_B2B_TIER
from ..engine.models import CUSTOMER_B2B
from ..exceptions import GSTINVerificationError

logger = logging.getLogger(__name__)

GSTIN_PATTERN = re.compile(r'^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$')
MIN_STATE_CODE = 1
MAX_STATE_CODE = 37


@dataclass
class GSTINVerification:
    """Result of a GSTIN check."""
    valid: bool
    error: Optional[str] = None
    details: dict = field(default_factory=dict)


def verify_gstin(gstin: str, business_name: str = "", as_of: Optional[datetime] = None) -> GSTINVerification:
    """Check GSTIN format and state code."""
    candidate = (gstin or "").strip().upper()

    if not GSTIN_PATTERN.match(candidate):
        return GSTINVerification(valid=False, error="Invalid GSTIN format")

    state_code = candidate[:2]
    if not MIN_STATE_CODE <= int(state_code) <= MAX_STATE_CODE:
        return GSTINVerification(valid=False, error="Invalid state code in GSTIN")

    return GSTINVerification(
        valid=True,
        details={
            "gstin": candidate,
            "business_name": business_name,
            "state_code": state_code,
            "pan_number": candidate[2:12],
            "verified_at": (as_of or datetime.now()).isoformat(),
        },
    )


def upgrade_to_b2b(profile: dict, gstin_details: dict, as_of: Optional[datetime] = None) -> dict:
    """
    Return a copy of `profile` upgraded to a verified B2B account.

    Raises:
        GSTINVerificationError: if the GSTIN fails verification
    """
    gstin = gstin_details.get("gstin", "")
    verification = verify_gstin(gstin, gstin_details.get("business_name", ""), as_of)
    if not verification.valid:
        logger.info("Rejected B2B upgrade for %s: %s", profile.get("id"), verification.error)
        raise GSTINVerificationError(gstin, verification.error or "GSTIN verification failed")

    now = (as_of or datetime.now()).isoformat()
    upgraded = dict(profile)
    upgraded.update({
        "customer_type": CUSTOMER_B2B,
        "gstin": verification.details["gstin"],
        "gst_verified": True,
        "gst_verification_date": now,
        "business_name": gstin_details.get("business_name"),
        "business_address": gstin_details.get("business_address"),
        "b2b_category": gstin_details.get("b2b_category") or DEFAULT_B2B_TIER,
        "updated_at": now,
    })
    return upgraded
