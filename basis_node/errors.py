"""
Error taxonomy for the Basis payment gate and witness signer.

Every error carries an HTTP status and a public message that is safe to
return to the caller. Internal details stay in the logs.
"""
from typing import Optional


class BasisError(Exception):
    """Base class for all gate/signer failures."""

    status_code = 500
    error = "Internal Server Error"
    default_message = "An unexpected error occurred while processing your request"

    def __init__(self, message: Optional[str] = None, payment_context: Optional[dict] = None):
        self.message = message or self.default_message
        self.payment_context = payment_context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        d = {"error": self.error, "message": self.message}
        if self.payment_context is not None:
            d["payment_context"] = self.payment_context
        return d


class PaymentRequired(BasisError):
    """Missing or malformed payment credential."""

    status_code = 402
    error = "Payment Required"
    default_message = (
        "You must attach a valid x402 transaction hash to the Authorization header."
    )


class ReplayDetected(BasisError):
    """Transaction hash is already pending or used."""

    status_code = 402
    error = "Payment Reuse Detected"
    default_message = (
        "This transaction hash has already been used. "
        "Each payment can only be used once."
    )


class VerificationFailed(BasisError):
    """Chain-level rejection of the payment."""

    status_code = 402
    error = "Payment Verification Failed"
    default_message = "Transaction does not meet payment requirements"


class ConfigurationError(BasisError):
    """Missing or malformed key, recipient or store binding. Never retried."""

    status_code = 500
    error = "Configuration Error"
    default_message = "Service is not configured"


class InternalError(BasisError):
    """Store failure around the replay lock. Fails closed."""

    status_code = 500
    error = "Internal Server Error"
    default_message = "Failed to process payment verification"
