"""
Micro-notary: hash data and stamp it with a registration time.

Soft commit only - nothing is written on-chain.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from .crypto import is_hex32, keccak_hex
from .witness import TimestampPayload, iso_timestamp


@dataclass(frozen=True)
class TimestampEvent:
    event_hash: str
    registered_at: str
    nonce: str
    original_data: Optional[str] = None

    def payload(self) -> TimestampPayload:
        return TimestampPayload(
            event_hash=self.event_hash,
            registered_at=self.registered_at,
            nonce=self.nonce,
        )


def timestamp_event(data: str, is_hash: bool = False) -> TimestampEvent:
    """
    Hash data with keccak-256 (unless it already is a hash) and stamp it.

    Raises ValueError on empty data or a malformed pre-computed hash.
    """
    if not data:
        raise ValueError("Data cannot be empty")

    if is_hash:
        if not data.startswith("0x"):
            raise ValueError("Hash must start with '0x' prefix")
        if len(data) != 66:
            raise ValueError(f"Invalid hash length. Expected 66 characters (0x + 64 hex), got {len(data)}")
        if not is_hex32(data):
            raise ValueError("Invalid hex format for hash")
        event_hash = data
    else:
        event_hash = keccak_hex(data)

    return TimestampEvent(
        event_hash=event_hash,
        registered_at=iso_timestamp(),
        nonce=str(uuid4()),
        original_data=None if is_hash else data,
    )
