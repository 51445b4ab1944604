"""
Tests for the Base receipt verifier.

The JSON-RPC endpoint is an httpx.MockTransport; no network is touched.
"""
import asyncio

import httpx
import pytest

from basis_node.lib.chain import (
    EXAMPLE_TX_HASH,
    ChainVerifier,
    FailureReason,
    TRANSFER_TOPIC,
    decode_transfer,
    find_qualifying_transfer,
    is_placeholder_hash,
)
from conftest import OTHER, PAYER, RECIPIENT, TX_HASH, make_receipt, rpc_transport, transfer_log

RPC_URL = "https://rpc.test"


def verify(transport, tx_hash=TX_HASH, recipient=RECIPIENT):
    verifier = ChainVerifier(RPC_URL, transport=transport)
    return asyncio.run(verifier.verify(tx_hash, recipient))


class TestPlaceholderHashes:
    @pytest.mark.parametrize(
        "tx_hash",
        [
            EXAMPLE_TX_HASH,
            EXAMPLE_TX_HASH.upper().replace("0X", "0x"),
            "0x" + "0" * 64,
            "0x" + "f" * 64,
            "0x" + "F" * 16 + "ab" * 24,
        ],
    )
    def test_rejected_before_network(self, tx_hash):
        calls = []
        result = verify(rpc_transport(result=make_receipt([]), calls=calls), tx_hash=tx_hash)

        assert not result.valid
        assert result.reason == FailureReason.PLACEHOLDER_HASH
        assert calls == [], "placeholder hashes must never reach the RPC"

    def test_real_looking_hash_is_not_placeholder(self):
        assert not is_placeholder_hash(TX_HASH)


class TestDecodeTransfer:
    def test_decodes_usdc_transfer(self):
        transfer = decode_transfer(transfer_log(PAYER, RECIPIENT, 5000))
        assert transfer.sender.lower() == PAYER.lower()
        assert transfer.recipient.lower() == RECIPIENT.lower()
        assert transfer.value == 5000

    def test_ignores_other_contract(self):
        assert decode_transfer(transfer_log(PAYER, RECIPIENT, 5000, token=OTHER)) is None

    def test_ignores_other_event(self):
        log = transfer_log(PAYER, RECIPIENT, 5000)
        log["topics"][0] = "0x" + "12" * 32
        assert decode_transfer(log) is None

    def test_ignores_malformed_data(self):
        log = transfer_log(PAYER, RECIPIENT, 5000)
        log["data"] = "0xnothex"
        assert decode_transfer(log) is None

    def test_contract_address_is_case_insensitive(self):
        log = transfer_log(PAYER, RECIPIENT, 5000)
        log["address"] = log["address"].lower()
        assert decode_transfer(log) is not None

    def test_first_qualifying_transfer_wins(self):
        logs = [
            transfer_log(OTHER, RECIPIENT, 10),
            transfer_log(PAYER, OTHER, 10_000),
            transfer_log(PAYER, RECIPIENT, 2000),
            transfer_log(OTHER, RECIPIENT, 3000),
        ]
        transfer = find_qualifying_transfer(logs, RECIPIENT)
        assert transfer.sender.lower() == PAYER.lower()
        assert transfer.value == 2000

    def test_topic_constant(self):
        assert TRANSFER_TOPIC == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


class TestVerify:
    def test_valid_payment(self):
        calls = []
        result = verify(rpc_transport(result=make_receipt([transfer_log(PAYER, RECIPIENT, 1000)]), calls=calls))

        assert result.valid
        assert result.payer_address.lower() == PAYER.lower()
        assert calls[0]["method"] == "eth_getTransactionReceipt"
        assert calls[0]["params"] == [TX_HASH]

    def test_minimum_amount_boundary(self):
        """999 units is one short of 0.001 USDC."""
        short = verify(rpc_transport(result=make_receipt([transfer_log(PAYER, RECIPIENT, 999)])))
        exact = verify(rpc_transport(result=make_receipt([transfer_log(PAYER, RECIPIENT, 1000)])))

        assert not short.valid
        assert short.reason == FailureReason.NO_QUALIFYING_TRANSFER
        assert exact.valid

    def test_recipient_match_is_case_insensitive(self):
        result = verify(
            rpc_transport(result=make_receipt([transfer_log(PAYER, RECIPIENT, 1000)])),
            recipient=RECIPIENT.lower(),
        )
        assert result.valid

    def test_wrong_recipient(self):
        result = verify(rpc_transport(result=make_receipt([transfer_log(PAYER, OTHER, 50_000)])))
        assert result.reason == FailureReason.NO_QUALIFYING_TRANSFER

    def test_reverted_transaction(self):
        result = verify(rpc_transport(result=make_receipt([transfer_log(PAYER, RECIPIENT, 1000)], status="0x0")))
        assert result.reason == FailureReason.FAILED_OR_PENDING

    def test_no_logs(self):
        result = verify(rpc_transport(result=make_receipt([])))
        assert result.reason == FailureReason.NO_LOGS
        assert result.error == "Transaction contains no logs"

    def test_receipt_not_found(self):
        result = verify(rpc_transport(result=None))
        assert result.reason == FailureReason.RECEIPT_NOT_FOUND

    def test_network_error(self):
        result = verify(rpc_transport(exc=httpx.ConnectError("connection refused")))
        assert result.reason == FailureReason.NETWORK_ERROR

    def test_timeout_is_network_error(self):
        result = verify(rpc_transport(exc=httpx.ReadTimeout("slow")))
        assert result.reason == FailureReason.NETWORK_ERROR

    def test_http_error_status_is_network_error(self):
        result = verify(rpc_transport(result=None, status_code=503))
        assert result.reason == FailureReason.NETWORK_ERROR

    def test_rpc_error(self):
        result = verify(rpc_transport(error={"code": -32602, "message": "invalid argument"}))
        assert result.reason == FailureReason.RPC_ERROR
        assert "invalid argument" not in result.error, "RPC internals are not echoed"

    def test_to_dict(self):
        result = verify(rpc_transport(result=make_receipt([])))
        assert result.to_dict() == {
            "valid": False,
            "reason": "no_logs",
            "error": "Transaction contains no logs",
        }
