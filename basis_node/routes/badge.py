"""
Basis: Badge - identity node.

POST /issue_badge - x402-gated, returns a signed session badge for a wallet
"""
import asyncio
import time
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from ..dependencies import get_identity_store, get_signer, require_payment
from ..lib.badge import check_status
from ..lib.lookup import LabelStore
from ..lib.witness import WitnessSigner
from ..models.packet import BasisPacketResponse, IssueBadgeRequest, build_packet
from ..services.audit import schedule_request_log
from ..services.payment_gate import Authorized

logger = logging.getLogger("badge")

router = APIRouter(tags=["badge"])


@router.post("/issue_badge", response_model=BasisPacketResponse)
async def issue_badge(
    body: IssueBadgeRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    signer: WitnessSigner = Depends(get_signer),
    identity_store: LabelStore = Depends(get_identity_store),
    payment: Authorized = Depends(require_payment),
):
    """Look the wallet up and sign WALLET:{w}:STATUS:{s}:SESSION:{uuid}."""
    start = time.perf_counter()

    badge = await asyncio.to_thread(check_status, identity_store, body.wallet_address)
    proof = signer.sign(badge.payload())
    latency_ms = int((time.perf_counter() - start) * 1000)

    logger.info(f"Badge {badge.status.value} issued for {badge.wallet_address}")
    schedule_request_log(
        background_tasks,
        request,
        tool_name="basis_badge",
        status=200,
        latency_ms=latency_ms,
        badge_status=badge.status.value,
        witness_id=proof.witness_id,
    )

    return build_packet(
        data=badge.to_dict(),
        proof=proof,
        node=request.app.state.settings["node_id"],
        operation="issue_badge",
        latency_ms=latency_ms,
    )
