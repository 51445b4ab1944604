"""
Witness signer - turns an action result into a signed certificate.

Each operation kind has one canonical payload class. The payload is
rendered to a string, keccak-256 hashed, and the raw hash is signed with
the node key. The rendered strings must stay byte-compatible with
certificates already issued, so numbers are printed the way the JS nodes
printed them (1.0 -> "1").
"""
import abc
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, ClassVar, Optional

from .crypto import (
    SIGNATURE_METHOD,
    keccak_hex,
    load_private_key,
    public_key_to_address,
    recover_address,
    sign_hash,
    verify_hash_signature,
)
from ..models.packet import WitnessCertificate

logger = logging.getLogger("witness")


class OperationKind(str, Enum):
    CONTENT = "content"
    CLASSIFICATION = "classification"
    CACHE_WRITE = "cache_write"
    CACHE_READ = "cache_read"
    CALCULATION = "calculation"
    TIMESTAMP = "timestamp"
    BADGE = "badge"
    RISK = "risk"


DEFAULT_WITNESS_IDS = {
    OperationKind.CONTENT: "basis-edge-node-01",
    OperationKind.CLASSIFICATION: "basis-scan-node-01",
    OperationKind.CACHE_WRITE: "basis-cache-node-01",
    OperationKind.CACHE_READ: "basis-cache-node-01",
    OperationKind.CALCULATION: "basis-calc-node-01",
    OperationKind.TIMESTAMP: "basis-hash-node-01",
    OperationKind.BADGE: "basis-badge-node-01",
    OperationKind.RISK: "basis-signal-node-01",
}


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _js_float(value: float) -> str:
    """
    Number::toString for a double.

    repr() already yields the shortest round-trip digits; only the layout
    differs. JS prints plain decimals for 1e-6 <= |x| < 1e21 and otherwise
    uses d.ddde+N / d.ddde-N with no exponent padding.
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        mantissa = digits[0] + (f".{digits[1:]}" if k > 1 else "")
        text = f"{mantissa}e{'+' if n - 1 >= 0 else '-'}{abs(n - 1)}"
    return sign + text


def format_number(value: Any) -> str:
    """Render a scalar the way String(x) does in JS."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _js_float(value)
    return str(value)


def compact_json(value: Any) -> str:
    """JSON.stringify equivalent: no whitespace, key order kept, JS number layout."""
    if isinstance(value, dict):
        members = (f"{json.dumps(str(k), ensure_ascii=False)}:{compact_json(v)}" for k, v in value.items())
        return "{" + ",".join(members) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(compact_json(v) for v in value) + "]"
    if isinstance(value, float):
        # JSON has no NaN/Infinity; JSON.stringify writes null
        return _js_float(value) if math.isfinite(value) else "null"
    return json.dumps(value, ensure_ascii=False)


@dataclass(frozen=True)
class CanonicalPayload(abc.ABC):
    """Base for every payload variant. Subclasses set kind and template."""

    kind: ClassVar[OperationKind]
    template: ClassVar[str]

    @abc.abstractmethod
    def fields(self, timestamp: str) -> dict[str, str]:
        ...

    @property
    def certificate_time(self) -> Optional[str]:
        """Time the certificate must carry, when the payload fixes one."""
        return None

    def render(self, timestamp: str) -> str:
        return self.template.format(**self.fields(timestamp))


@dataclass(frozen=True)
class ContentPayload(CanonicalPayload):
    url: str
    content: str

    kind = OperationKind.CONTENT
    template = "{url}:{timestamp}:{content}"

    def fields(self, timestamp):
        return {"url": self.url, "timestamp": timestamp, "content": self.content}


@dataclass(frozen=True)
class ClassificationPayload(CanonicalPayload):
    image_hash: str
    label: str
    score: float

    kind = OperationKind.CLASSIFICATION
    template = "IMAGE_HASH:{hash}:TOP_RESULT:{label}:CONFIDENCE:{score}"

    def fields(self, timestamp):
        return {"hash": self.image_hash, "label": self.label, "score": format_number(self.score)}


@dataclass(frozen=True)
class CacheWritePayload(CanonicalPayload):
    key: str
    value: str

    kind = OperationKind.CACHE_WRITE
    template = "I hold this data as of {timestamp}. Key: {key}, Value: {value}"

    def fields(self, timestamp):
        return {"timestamp": timestamp, "key": self.key, "value": self.value}


@dataclass(frozen=True)
class CacheReadPayload(CanonicalPayload):
    key: str
    value: str

    kind = OperationKind.CACHE_READ
    template = "{key}:{value}:{timestamp}"

    def fields(self, timestamp):
        return {"key": self.key, "value": self.value, "timestamp": timestamp}


@dataclass(frozen=True)
class CalculationPayload(CanonicalPayload):
    name: str
    inputs: dict = field(hash=False)
    result: float

    kind = OperationKind.CALCULATION
    template = "FORMULA:{name}:INPUTS:{json_inputs}:RESULT:{result}"

    def fields(self, timestamp):
        return {
            "name": self.name,
            "json_inputs": compact_json(self.inputs),
            "result": format_number(self.result),
        }


@dataclass(frozen=True)
class TimestampPayload(CanonicalPayload):
    # registered_at is the event time, not the signing time
    event_hash: str
    registered_at: str
    nonce: str

    kind = OperationKind.TIMESTAMP
    template = "EVENT:{event_hash}:TIME:{timestamp}:NONCE:{nonce}"

    def fields(self, timestamp):
        return {"event_hash": self.event_hash, "timestamp": self.registered_at, "nonce": self.nonce}


@dataclass(frozen=True)
class BadgePayload(CanonicalPayload):
    wallet: str
    status: str
    session_id: str

    kind = OperationKind.BADGE
    template = "WALLET:{wallet}:STATUS:{status}:SESSION:{session_id}"

    def fields(self, timestamp):
        return {"wallet": self.wallet, "status": self.status, "session_id": self.session_id}


@dataclass(frozen=True)
class RiskPayload(CanonicalPayload):
    target: str
    score: float
    assessed_at: str

    kind = OperationKind.RISK
    template = "TARGET:{target}:SCORE:{score}:TIME:{timestamp}"

    def fields(self, timestamp):
        return {"target": self.target, "score": format_number(self.score), "timestamp": self.assessed_at}

    @property
    def certificate_time(self):
        return self.assessed_at


PAYLOAD_TYPES: dict[OperationKind, type[CanonicalPayload]] = {
    cls.kind: cls
    for cls in (
        ContentPayload,
        ClassificationPayload,
        CacheWritePayload,
        CacheReadPayload,
        CalculationPayload,
        TimestampPayload,
        BadgePayload,
        RiskPayload,
    )
}


def build_payload(kind: OperationKind | str, fields: dict) -> CanonicalPayload:
    """Construct the payload variant for kind. Raises ValueError on unknown kind/fields."""
    try:
        payload_type = PAYLOAD_TYPES[OperationKind(kind)]
    except ValueError:
        raise ValueError(f"Unknown operation kind: {kind}")
    try:
        return payload_type(**fields)
    except TypeError as e:
        raise ValueError(f"Invalid fields for {payload_type.kind.value}: {e}")


class WitnessSigner:
    """
    Holds the node key and signs canonical payloads.

    Raises ConfigurationError at construction when the key is missing or
    malformed, so a bad key is caught before any request state changes.
    """

    def __init__(
        self,
        private_key: Optional[str],
        witness_ids: Optional[dict[OperationKind, str]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._key = load_private_key(private_key)
        self.address = public_key_to_address(self._key.public_key)
        self.witness_ids = {**DEFAULT_WITNESS_IDS, **(witness_ids or {})}
        self._clock = clock

    def sign(self, payload: CanonicalPayload) -> WitnessCertificate:
        timestamp = payload.certificate_time or iso_timestamp(self._clock())
        message = payload.render(timestamp)
        content_hash = keccak_hex(message)
        signature = sign_hash(bytes.fromhex(content_hash[2:]), self._key)

        return WitnessCertificate(
            witness_id=self.witness_ids[payload.kind],
            timestamp=timestamp,
            method=SIGNATURE_METHOD,
            signer=self.address,
            hash=content_hash,
            signature=signature,
        )

    def sign_operation(self, kind: OperationKind | str, fields: dict) -> WitnessCertificate:
        return self.sign(build_payload(kind, fields))


def recover_signer(content_hash: str, signature: str) -> str:
    return recover_address(content_hash, signature)


def verify_certificate(certificate: WitnessCertificate, payload: CanonicalPayload) -> tuple[bool, str]:
    """
    Re-check a certificate offline against the payload it claims to cover.

    Returns:
        Tuple of (is_valid, message)
    """
    expected_hash = keccak_hex(payload.render(certificate.timestamp))
    if expected_hash != certificate.hash:
        return False, "Hash does not match payload"

    ok, message = verify_hash_signature(certificate.hash, certificate.signature, certificate.signer)
    if not ok:
        return False, message
    return True, "Certificate verified"
