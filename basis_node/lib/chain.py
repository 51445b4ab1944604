"""
Base mainnet client for x402 payment verification.

Fetches a transaction receipt over JSON-RPC and looks for a USDC
Transfer(from, to, value) log paying the configured recipient at least the
minimum amount. Pure query, no state.
"""
import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx
from eth_utils import to_checksum_address

from .crypto import keccak_hex

logger = logging.getLogger("chain")

# USDC on Base mainnet
USDC_BASE_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"

# 0.001 USDC (6 decimals)
MIN_PAYMENT_AMOUNT = 1000

TRANSFER_TOPIC = keccak_hex("Transfer(address,address,uint256)")

EXAMPLE_TX_HASH = "0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"
PLACEHOLDER_PATTERN = re.compile(
    r"^0x(1234567890abcdef|0000000000000000|ffffffffffffffff)", re.IGNORECASE
)


class FailureReason(str, Enum):
    PLACEHOLDER_HASH = "placeholder_hash"
    FAILED_OR_PENDING = "failed_or_pending"
    NO_LOGS = "no_logs"
    NO_QUALIFYING_TRANSFER = "no_qualifying_transfer"
    RECEIPT_NOT_FOUND = "receipt_not_found"
    NETWORK_ERROR = "network_error"
    RPC_ERROR = "rpc_error"


FAILURE_MESSAGES = {
    FailureReason.PLACEHOLDER_HASH: (
        "Invalid transaction hash: This appears to be a test/placeholder hash. "
        "Please use a real transaction hash from Base Mainnet."
    ),
    FailureReason.FAILED_OR_PENDING: "Transaction failed or is pending",
    FailureReason.NO_LOGS: "Transaction contains no logs",
    FailureReason.NO_QUALIFYING_TRANSFER: (
        "No valid USDC transfer found to recipient address with sufficient amount"
    ),
    FailureReason.RECEIPT_NOT_FOUND: (
        "Transaction receipt could not be found. The transaction may not be "
        "processed on a block yet, or the hash may be invalid. Please ensure "
        "the transaction has been confirmed on Base Mainnet."
    ),
    FailureReason.NETWORK_ERROR: "Failed to connect to Base Mainnet RPC. Please try again later.",
    FailureReason.RPC_ERROR: "Failed to verify transaction on blockchain",
}


@dataclass(frozen=True)
class Transfer:
    sender: str
    recipient: str
    value: int


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    payer_address: Optional[str] = None
    reason: Optional[FailureReason] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, payer_address: str) -> "VerificationResult":
        return cls(valid=True, payer_address=payer_address)

    @classmethod
    def fail(cls, reason: FailureReason) -> "VerificationResult":
        return cls(valid=False, reason=reason, error=FAILURE_MESSAGES[reason])

    def to_dict(self) -> dict:
        d = {"valid": self.valid}
        if self.payer_address:
            d["payer_address"] = self.payer_address
        if self.reason:
            d["reason"] = self.reason.value
        if self.error:
            d["error"] = self.error
        return d


class ReceiptNotFound(Exception):
    pass


class RpcError(Exception):
    pass


def is_placeholder_hash(tx_hash: str) -> bool:
    """Documentation/test hashes that must never reach the ledger."""
    return tx_hash.lower() == EXAMPLE_TX_HASH or PLACEHOLDER_PATTERN.match(tx_hash) is not None


def _topic_to_address(topic: str) -> str:
    return to_checksum_address("0x" + topic[-40:])


def decode_transfer(log: dict, token_address: str = USDC_BASE_ADDRESS) -> Optional[Transfer]:
    """
    Decode an ERC-20 Transfer log emitted by token_address.

    Returns None for logs from other contracts, other events, or malformed
    payloads.
    """
    address = log.get("address") or ""
    if address.lower() != token_address.lower():
        return None

    topics = log.get("topics") or []
    if len(topics) != 3 or topics[0].lower() != TRANSFER_TOPIC:
        return None

    data = log.get("data") or ""
    try:
        value = int(data, 16)
        return Transfer(
            sender=_topic_to_address(topics[1]),
            recipient=_topic_to_address(topics[2]),
            value=value,
        )
    except (ValueError, TypeError):
        return None


def find_qualifying_transfer(
    logs: list[dict],
    recipient: str,
    min_amount: int = MIN_PAYMENT_AMOUNT,
    token_address: str = USDC_BASE_ADDRESS,
) -> Optional[Transfer]:
    """First transfer to recipient of at least min_amount, or None."""
    for log in logs:
        transfer = decode_transfer(log, token_address)
        if transfer is None:
            continue
        if transfer.recipient.lower() == recipient.lower() and transfer.value >= min_amount:
            return transfer
    return None


class ChainVerifier:
    """
    Verifies x402 payments against a Base JSON-RPC endpoint.

    No request timeout is set by default; a stalled RPC stalls the request
    unless the caller passes one.
    """

    def __init__(
        self,
        rpc_url: str,
        token_address: str = USDC_BASE_ADDRESS,
        min_amount: int = MIN_PAYMENT_AMOUNT,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.token_address = token_address
        self.min_amount = min_amount
        self.timeout = timeout
        self._transport = transport

    async def get_receipt(self, tx_hash: str) -> dict:
        """
        eth_getTransactionReceipt.

        Raises ReceiptNotFound for a null result, RpcError for JSON-RPC
        errors, and httpx errors for transport failures.
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                self.rpc_url,
                json={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "method": "eth_getTransactionReceipt",
                    "params": [tx_hash],
                },
            )
            response.raise_for_status()

        try:
            body = response.json()
        except ValueError as e:
            raise RpcError(f"Malformed RPC response: {e}")

        if body.get("error"):
            raise RpcError(str(body["error"].get("message", body["error"])))

        receipt = body.get("result")
        if receipt is None:
            raise ReceiptNotFound(tx_hash)
        return receipt

    async def verify(self, tx_hash: str, recipient: str) -> VerificationResult:
        if is_placeholder_hash(tx_hash):
            return VerificationResult.fail(FailureReason.PLACEHOLDER_HASH)

        try:
            receipt = await self.get_receipt(tx_hash)
        except ReceiptNotFound:
            logger.info(f"Receipt not found for {tx_hash}")
            return VerificationResult.fail(FailureReason.RECEIPT_NOT_FOUND)
        except (httpx.TimeoutException, httpx.TransportError, httpx.HTTPStatusError) as e:
            logger.warning(f"RPC unreachable while verifying {tx_hash}: {e}")
            return VerificationResult.fail(FailureReason.NETWORK_ERROR)
        except RpcError as e:
            logger.warning(f"RPC error while verifying {tx_hash}: {e}")
            return VerificationResult.fail(FailureReason.RPC_ERROR)

        if receipt.get("status") != "0x1":
            return VerificationResult.fail(FailureReason.FAILED_OR_PENDING)

        logs = receipt.get("logs") or []
        if not logs:
            return VerificationResult.fail(FailureReason.NO_LOGS)

        transfer = find_qualifying_transfer(logs, recipient, self.min_amount, self.token_address)
        if transfer is None:
            return VerificationResult.fail(FailureReason.NO_QUALIFYING_TRANSFER)

        logger.info(f"Payment verified: {tx_hash} ({transfer.value} units from {transfer.sender})")
        return VerificationResult.ok(transfer.sender)
