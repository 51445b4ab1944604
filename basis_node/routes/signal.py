"""
Basis: Signal - risk oracle node.

POST /check_risk - x402-gated, returns a signed risk score for an address or domain
"""
import asyncio
import time

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from ..dependencies import get_risk_store, get_signer, require_payment
from ..lib.lookup import LabelStore
from ..lib.signal import assess_risk
from ..lib.witness import RiskPayload, WitnessSigner, iso_timestamp
from ..models.packet import BasisPacketResponse, CheckRiskRequest, build_packet
from ..services.audit import schedule_request_log
from ..services.payment_gate import Authorized

router = APIRouter(tags=["signal"])


@router.post("/check_risk", response_model=BasisPacketResponse)
async def check_risk(
    body: CheckRiskRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    signer: WitnessSigner = Depends(get_signer),
    risk_store: LabelStore = Depends(get_risk_store),
    payment: Authorized = Depends(require_payment),
):
    """
    Score the target and sign TARGET:{t}:SCORE:{n}:TIME:{t}.

    The certificate timestamp is the assessment time inside the payload.
    """
    start = time.perf_counter()

    assessment = await asyncio.to_thread(assess_risk, risk_store, body.target)
    proof = signer.sign(
        RiskPayload(target=body.target, score=assessment.score, assessed_at=iso_timestamp())
    )
    latency_ms = int((time.perf_counter() - start) * 1000)

    schedule_request_log(
        background_tasks,
        request,
        tool_name="basis_signal",
        status=200,
        latency_ms=latency_ms,
        target=body.target,
        risk_score=assessment.score,
        risk_label=assessment.label.value,
        witness_id=proof.witness_id,
    )

    return build_packet(
        data={"target": body.target, **assessment.to_dict()},
        proof=proof,
        node=request.app.state.settings["node_id"],
        operation="check_risk",
        latency_ms=latency_ms,
    )
