"""
Badge: identity status for a wallet address.

The identity store maps lower-cased addresses to "BLOCK" or "VIP". Anything
else, or no record at all, is NEUTRAL (default allow). Each check gets a
fresh session id that the signed badge carries.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from uuid import uuid4

from .lookup import LabelStore
from .witness import BadgePayload


class BadgeStatus(str, Enum):
    BANNED = "BANNED"
    VERIFIED = "VERIFIED"
    NEUTRAL = "NEUTRAL"


_STATUS_BY_LABEL = {
    "BLOCK": BadgeStatus.BANNED,
    "VIP": BadgeStatus.VERIFIED,
}


@dataclass(frozen=True)
class BadgeResult:
    status: BadgeStatus
    session_id: str
    wallet_address: str

    def payload(self) -> BadgePayload:
        return BadgePayload(wallet=self.wallet_address, status=self.status.value, session_id=self.session_id)

    def to_dict(self) -> dict:
        return {
            "wallet_address": self.wallet_address,
            "status": self.status.value,
            "session_id": self.session_id,
        }


def check_status(
    store: LabelStore,
    wallet_address: str,
    new_session_id: Callable[[], str] = lambda: str(uuid4()),
) -> BadgeResult:
    normalized = wallet_address.lower()
    label = store.get(normalized)

    status = BadgeStatus.NEUTRAL
    if label is not None:
        status = _STATUS_BY_LABEL.get(str(label).strip().upper(), BadgeStatus.NEUTRAL)

    return BadgeResult(status=status, session_id=new_session_id(), wallet_address=normalized)
