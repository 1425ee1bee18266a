"""
Payment intent errors. A signature mismatch is not one of them: it is a
normal verification outcome.
"""
from typing import Optional, Dict, Any


class PaymentIntentError(Exception):

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class InvalidAmountError(PaymentIntentError):

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("order:invalid_amount", message, details)


class InvalidCurrencyError(PaymentIntentError):

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("order:invalid_currency", message, details)


class DuplicateOrderIdError(PaymentIntentError):
    """Id already stored; the issuer retries with a fresh one."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("store:duplicate_order_id", message, details)


class NotFoundError(PaymentIntentError):

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("order:not_found", message, details)


class DuplicateReceiptError(PaymentIntentError):
    """Receipt already used for an order with a different amount or currency."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("order:duplicate_receipt", message, details)


class InvalidTransitionError(PaymentIntentError):
    """Order already settled, or the target status is not terminal."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("store:invalid_transition", message, details)


class InvalidStateError(PaymentIntentError):
    """Verification of an order that is no longer pending (replay or race)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("verification:invalid_state", message, details)
