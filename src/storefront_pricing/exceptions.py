"""
Exception classes for the pricing engine.

Business outcomes (an invalid coupon, no qualifying offer, an empty catalog)
are return values, not exceptions. These classes cover records that cannot
be interpreted and explicit verification failures.
"""


class PricingError(Exception):
    """
    Base exception for all pricing errors.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (record ids, fields)
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class MalformedRecordError(PricingError):
    """A discount, coupon, offer or product record could not be parsed."""

    def __init__(self, record_type: str, reason: str, record_id: str | None = None):
        message = f"Malformed {record_type} record"
        if record_id:
            message += f" '{record_id}'"
        message += f": {reason}"
        super().__init__(message, {"record_type": record_type, "record_id": record_id, "reason": reason})
        self.record_type = record_type
        self.reason = reason


class GSTINVerificationError(PricingError):
    """GSTIN failed verification during a B2B upgrade."""

    def __init__(self, gstin: str, reason: str):
        super().__init__(reason, {"gstin": gstin})
        self.gstin = gstin
        self.reason = reason
