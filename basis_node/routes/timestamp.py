"""
Basis: Hash - micro-notary endpoint.

POST /timestamp - x402-gated, returns a signed timestamp receipt for data
"""
import time
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from ..dependencies import get_signer, require_payment
from ..lib.notary import timestamp_event
from ..lib.witness import WitnessSigner
from ..models.packet import BasisPacketResponse, TimestampRequest, build_packet
from ..services.audit import schedule_request_log
from ..services.payment_gate import Authorized

logger = logging.getLogger("timestamp")

router = APIRouter(tags=["hash"])


@router.post("/timestamp", response_model=BasisPacketResponse)
async def create_timestamp(
    body: TimestampRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    signer: WitnessSigner = Depends(get_signer),
    payment: Authorized = Depends(require_payment),
):
    """
    Hash data (unless is_hash) and sign EVENT:{hash}:TIME:{t}:NONCE:{uuid}.

    The signer dependency resolves before the payment gate, so a broken key
    never consumes a payment.
    """
    start = time.perf_counter()

    try:
        event = timestamp_event(body.data, is_hash=body.is_hash)
    except ValueError as e:
        raise HTTPException(400, str(e))

    proof = signer.sign(event.payload())
    latency_ms = int((time.perf_counter() - start) * 1000)

    data = {
        "event_hash": event.event_hash,
        "registered_at": event.registered_at,
        "nonce": event.nonce,
    }
    if event.original_data is not None:
        data["data_length"] = len(event.original_data)

    schedule_request_log(
        background_tasks,
        request,
        tool_name="basis_hash",
        status=200,
        latency_ms=latency_ms,
        witness_id=proof.witness_id,
    )

    return build_packet(
        data=data,
        proof=proof,
        node=request.app.state.settings["node_id"],
        operation="timestamp",
        latency_ms=latency_ms,
    )
