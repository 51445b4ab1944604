"""
FastAPI dependencies shared by the gated routes.

Declare get_signer and any lookup-store dependency before require_payment
in a route signature so a misconfigured node fails the request before the
replay lock is touched.
"""
import logging

from fastapi import Request

from .errors import ConfigurationError
from .lib.lookup import LabelStore
from .lib.witness import WitnessSigner
from .services.payment_gate import Authorized, PaymentGate, Rejected

logger = logging.getLogger("x402")


def get_signer(request: Request) -> WitnessSigner:
    signer = request.app.state.signer
    if signer is None:
        # Built lazily so a missing key does not stop the app from booting
        try:
            signer = WitnessSigner(
                request.app.state.settings["private_key"],
                witness_ids=request.app.state.settings.get("witness_ids"),
            )
        except ConfigurationError as e:
            logger.error(f"Witness signer unavailable: {e.message}")
            raise
        request.app.state.signer = signer
    return signer


def _lookup_store(request: Request, attr: str, name: str) -> LabelStore:
    store = getattr(request.app.state, attr, None)
    if store is None:
        logger.error(f"{name} store not configured")
        raise ConfigurationError(f"{name} store not configured")
    return store


def get_identity_store(request: Request) -> LabelStore:
    return _lookup_store(request, "identity_store", "Identity")


def get_risk_store(request: Request) -> LabelStore:
    return _lookup_store(request, "risk_store", "Risk")


async def require_payment(request: Request) -> Authorized:
    """Run the x402 gate; attach payer identity to request.state."""
    gate: PaymentGate = request.app.state.payment_gate
    recipient = request.app.state.settings["recipient"]

    result = await gate.authorize(request.headers, recipient)
    if isinstance(result, Rejected):
        logger.info(f"Payment rejected ({result.kind.value}) on {request.url.path}")
        raise result.to_error(recipient)

    request.state.wallet_address = result.payer_address
    request.state.tx_hash = result.tx_id
    return result
