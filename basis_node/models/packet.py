from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from uuid import uuid4


class WitnessCertificate(BaseModel):
    """Signed proof of an action result. Returned to the caller, never stored."""
    witness_id: str
    timestamp: str
    method: str = "ecdsa-secp256k1"
    signer: str
    hash: str
    signature: str


class PacketMeta(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    latency_ms: int
    node: str
    operation: str


class BasisPacket(BaseModel):
    meta: PacketMeta
    data: Dict[str, Any]
    proof: WitnessCertificate


class BasisPacketResponse(BaseModel):
    basis_packet: BasisPacket


def build_packet(
    data: Dict[str, Any],
    proof: WitnessCertificate,
    node: str,
    operation: str,
    latency_ms: int,
) -> BasisPacketResponse:
    """Wrap an action result and its certificate into the outward packet."""
    return BasisPacketResponse(
        basis_packet=BasisPacket(
            meta=PacketMeta(latency_ms=latency_ms, node=node, operation=operation),
            data=data,
            proof=proof,
        )
    )


class PaymentContext(BaseModel):
    chain: str = "base"
    network: str = "mainnet"
    currency: str = "USDC"
    amount: str = "0.001"
    recipient: str


class PaymentErrorBody(BaseModel):
    """402/500 body produced by the payment gate."""
    error: str
    message: str
    payment_context: Optional[PaymentContext] = None


class TimestampRequest(BaseModel):
    data: str = Field(..., min_length=1, description="Raw data, or a 0x keccak hash when is_hash is set")
    is_hash: bool = Field(False, description="Treat data as an already computed hash")


class IssueBadgeRequest(BaseModel):
    wallet_address: str = Field(
        ..., pattern=r"^0x[a-fA-F0-9]{40}$", description="Ethereum wallet address to check"
    )


class CheckRiskRequest(BaseModel):
    target: str = Field(..., min_length=1, description="Wallet address (0x...) or domain name")


class VerifyProofRequest(BaseModel):
    hash: str = Field(..., description="0x + 64 hex keccak-256 digest")
    signature: str = Field(..., description="0x r||s||v signature")
    payload: Optional[str] = Field(None, description="Canonical payload text to re-hash")
    expected_signer: Optional[str] = None


class VerifyProofResponse(BaseModel):
    valid: bool
    signer: Optional[str] = None
    hash_matches: Optional[bool] = None
    signer_matches: Optional[bool] = None
    message: str
