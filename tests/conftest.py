"""
Shared fixtures for the Basis node tests.

Ledger access is faked with httpx.MockTransport; TTLs with a manual clock.
"""
import json

import httpx
import pytest

from basis_node.lib.chain import TRANSFER_TOPIC, USDC_BASE_ADDRESS, VerificationResult, FailureReason
from basis_node.services import audit

# Well-known secp256k1 test vector (private key -> address)
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TEST_SIGNER_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"

RECIPIENT = "0xC40f06A8b3702D1373E0b6aEF34e48c0e44e77f0"
PAYER = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
OTHER = "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"

TX_HASH = "0x" + "ab" * 32
OTHER_TX_HASH = "0x" + "cd" * 32


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeVerifier:
    """Stands in for ChainVerifier; records every call."""

    def __init__(self, result: VerificationResult = None):
        self.result = result or VerificationResult.ok(PAYER)
        self.calls: list[tuple[str, str]] = []

    async def verify(self, tx_hash: str, recipient: str) -> VerificationResult:
        self.calls.append((tx_hash, recipient))
        return self.result


def pad_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


def transfer_log(sender: str, recipient: str, value: int, token: str = USDC_BASE_ADDRESS) -> dict:
    return {
        "address": token,
        "topics": [TRANSFER_TOPIC, pad_topic(sender), pad_topic(recipient)],
        "data": "0x" + format(value, "064x"),
    }


def make_receipt(logs: list, status: str = "0x1") -> dict:
    return {"status": status, "logs": logs, "transactionHash": TX_HASH}


def rpc_transport(result=None, error=None, status_code: int = 200, exc: Exception = None, calls: list = None):
    """MockTransport answering eth_getTransactionReceipt."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(json.loads(request.content))
        if exc is not None:
            raise exc
        body = {"jsonrpc": "2.0", "id": 1}
        if error is not None:
            body["error"] = error
        else:
            body["result"] = result
        return httpx.Response(status_code, json=body)

    return httpx.MockTransport(handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_verifier():
    return FakeVerifier()


@pytest.fixture
def failing_verifier():
    return FakeVerifier(VerificationResult.fail(FailureReason.NO_QUALIFYING_TRANSFER))


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep real deployment secrets and the audit buffer out of tests."""
    for name in (
        "BASIS_PRIVATE_KEY",
        "BASIS_WALLET_ADDRESS",
        "BASIS_REPLAY_DB",
        "BASIS_IDENTITY_DB",
        "BASIS_RISK_DB",
        "BASIS_PAYMENT_HEADER",
        "SUPABASE_URL",
        "SUPABASE_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    audit.clear_request_logs()
    yield
    audit.clear_request_logs()
