"""
x402 payment gate.

Flow per request:
1. Credential: header must be 0x + 64 hex (the payment tx hash)
2. Replay check + lock: tx hash must have no record; write "pending" (5 min)
3. Chain verification of the USDC transfer
4. Failure: release the lock (best effort), reject
5. Success: mark "used" (24 h); if that write fails, reject anyway

Pending and used records are reported identically to the caller.
No retries at this layer.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Union

from ..errors import (
    BasisError,
    ConfigurationError,
    InternalError,
    PaymentRequired,
    ReplayDetected,
    VerificationFailed,
)
from ..lib.chain import ChainVerifier, VerificationResult
from ..lib.crypto import is_address, is_hex32
from ..lib.replay_store import PENDING, PENDING_TTL, REPLAY_TTL, USED, ReplayStore

logger = logging.getLogger("x402")

UNCONFIGURED_RECIPIENT = "0x_SETUP_YOUR_WALLET_SECRET"


class RejectionKind(str, Enum):
    PAYMENT_REQUIRED = "payment_required"
    REPLAY_DETECTED = "replay_detected"
    VERIFICATION_FAILED = "verification_failed"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


_ERRORS: dict[RejectionKind, type[BasisError]] = {
    RejectionKind.PAYMENT_REQUIRED: PaymentRequired,
    RejectionKind.REPLAY_DETECTED: ReplayDetected,
    RejectionKind.VERIFICATION_FAILED: VerificationFailed,
    RejectionKind.CONFIGURATION_ERROR: ConfigurationError,
    RejectionKind.INTERNAL_ERROR: InternalError,
}

# Rejections that tell the caller how to pay
_WITH_PAYMENT_CONTEXT = {RejectionKind.PAYMENT_REQUIRED, RejectionKind.VERIFICATION_FAILED}


def payment_context(recipient: Optional[str]) -> dict:
    return {
        "chain": "base",
        "network": "mainnet",
        "currency": "USDC",
        "amount": "0.001",
        "recipient": recipient or UNCONFIGURED_RECIPIENT,
    }


@dataclass(frozen=True)
class Authorized:
    payer_address: str
    tx_id: str


@dataclass(frozen=True)
class Rejected:
    kind: RejectionKind
    reason: Optional[str] = None
    verification: Optional[VerificationResult] = None

    def to_error(self, recipient: Optional[str] = None) -> BasisError:
        error_cls = _ERRORS[self.kind]
        context = payment_context(recipient) if self.kind in _WITH_PAYMENT_CONTEXT else None
        return error_cls(self.reason, payment_context=context)


AuthorizationResult = Union[Authorized, Rejected]


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


class PaymentGate:
    """
    Authorizes requests against on-chain USDC payments.

    The store is the only shared state. When it offers an atomic
    put_if_absent the check and the lock are one operation; otherwise two
    concurrent requests with the same hash can both take the lock.

    Store calls run in a worker thread; file-backed stores block on I/O.
    """

    def __init__(
        self,
        verifier: ChainVerifier,
        store: Optional[ReplayStore],
        header_name: str = "Authorization",
    ):
        self.verifier = verifier
        self.store = store
        self.header_name = header_name

    def _acquire(self, tx_id: str) -> bool:
        """Take the pending lock. False when a record already exists."""
        if self.store.atomic:
            return self.store.put_if_absent(tx_id, PENDING, PENDING_TTL)

        if self.store.get(tx_id) is not None:
            return False
        self.store.put(tx_id, PENDING, PENDING_TTL)
        return True

    async def _release(self, tx_id: str):
        try:
            await asyncio.to_thread(self.store.delete, tx_id)
        except Exception as e:
            # Pending record still expires on its own
            logger.error(f"Failed to release lock for {tx_id}: {e}")

    async def authorize(self, headers: Mapping[str, str], recipient: Optional[str]) -> AuthorizationResult:
        credential = _header(headers, self.header_name)
        if not credential or not is_hex32(credential):
            return Rejected(RejectionKind.PAYMENT_REQUIRED)

        # Hex is case-insensitive; one key per transaction
        tx_id = credential.lower()

        if not recipient or not is_address(recipient):
            logger.critical("BASIS_WALLET_ADDRESS missing or malformed - payment gate disabled")
            return Rejected(RejectionKind.CONFIGURATION_ERROR, "BASIS_WALLET_ADDRESS not configured")
        if self.store is None:
            logger.critical("Replay store not bound - payment gate disabled")
            return Rejected(RejectionKind.CONFIGURATION_ERROR, "Replay store not configured")

        try:
            acquired = await asyncio.to_thread(self._acquire, tx_id)
        except Exception as e:
            # SECURITY: never fall through to verification without a lock
            logger.error(f"Replay check/lock acquisition failed for {tx_id}: {e}")
            return Rejected(RejectionKind.INTERNAL_ERROR)

        if not acquired:
            logger.warning(f"Replay rejected: {tx_id}")
            return Rejected(RejectionKind.REPLAY_DETECTED)

        try:
            verification = await self.verifier.verify(tx_id, recipient)
        except Exception as e:
            logger.exception(f"Unexpected verifier error for {tx_id}: {e}")
            verification = VerificationResult(valid=False, error="Failed to verify transaction on blockchain")

        if not verification.valid:
            await self._release(tx_id)
            return Rejected(RejectionKind.VERIFICATION_FAILED, verification.error, verification)

        try:
            await asyncio.to_thread(self.store.put, tx_id, USED, REPLAY_TTL)
        except Exception as e:
            # Fail closed: a verified payment we could not record is still rejected
            logger.error(f"Lock update failed after verification for {tx_id}: {e}")
            return Rejected(
                RejectionKind.INTERNAL_ERROR,
                "Payment verified but failed to record usage. Please contact support.",
            )

        logger.info(f"Payment accepted: {tx_id} from {verification.payer_address}")
        return Authorized(payer_address=verification.payer_address, tx_id=tx_id)
