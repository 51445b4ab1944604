"""
Unpaid diagnostics.

POST /test          - sign a fixed payload and check the signer identity
POST /verify_proof  - recover the signer of a hash/signature pair
"""
import time
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..dependencies import get_signer
from ..errors import ConfigurationError
from ..lib.crypto import keccak_hex
from ..lib.witness import ContentPayload, recover_signer
from ..models.packet import VerifyProofRequest, VerifyProofResponse

logger = logging.getLogger("selftest")

router = APIRouter(tags=["diagnostics"])

TEST_URL = "https://test.basis.sh/test"
TEST_CONTENT = "This is a test payload for Basis proof verification"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


@router.post("/test")
def self_test(request: Request):
    """Generate a proof without payment and compare its signer with BASIS_WALLET_ADDRESS."""
    start = time.perf_counter()
    expected = request.app.state.settings["recipient"]

    try:
        signer = get_signer(request)
    except ConfigurationError as e:
        return JSONResponse(
            status_code=500,
            content={
                "error": "Private Key Error",
                "message": e.message,
                "test_results": {
                    "proof_exists": False,
                    "signer_matches": False,
                    "latency_ms": _elapsed_ms(start),
                    "private_key_format_valid": False,
                },
                "troubleshooting": {
                    "issue": "BASIS_PRIVATE_KEY format is invalid",
                    "expected_format": "0x followed by 64 hexadecimal characters (66 total)",
                    "check": "Ensure the secret is stored exactly, with no extra spaces or newlines",
                },
            },
        )

    proof = signer.sign(ContentPayload(url=TEST_URL, content=TEST_CONTENT))
    latency_ms = _elapsed_ms(start)
    signer_matches = bool(expected) and proof.signer.lower() == expected.lower()

    return {
        "test_results": {
            "proof_exists": True,
            "proof_object": proof.model_dump(),
            "signer_address": proof.signer,
            "expected_address": expected,
            "signer_matches": signer_matches,
            "latency_ms": latency_ms,
            "latency_under_200ms": latency_ms < 200,
        },
        "message": "Test completed successfully",
    }


@router.post("/verify_proof", response_model=VerifyProofResponse)
def verify_proof(body: VerifyProofRequest, request: Request):
    """Recover who signed a certificate hash; optionally re-hash the payload."""
    try:
        signer = recover_signer(body.hash, body.signature)
    except ValueError as e:
        return VerifyProofResponse(valid=False, message=f"Invalid hash or signature: {e}")

    hash_matches = None
    if body.payload is not None:
        hash_matches = keccak_hex(body.payload) == body.hash.lower()

    expected = body.expected_signer or request.app.state.settings["recipient"]
    signer_matches = None
    if expected:
        signer_matches = signer.lower() == expected.lower()

    valid = hash_matches is not False and signer_matches is not False
    return VerifyProofResponse(
        valid=valid,
        signer=signer,
        hash_matches=hash_matches,
        signer_matches=signer_matches,
        message="Proof verified" if valid else "Proof does not match",
    )
