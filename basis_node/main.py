import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .errors import BasisError
from .lib.chain import ChainVerifier
from .lib.lookup import LabelStore, ShelveLookup
from .lib.replay_store import MemoryReplayStore, ReplayStore, ShelveReplayStore
from .lib.witness import WitnessSigner
from .routes.badge import router as badge_router
from .routes.selftest import router as selftest_router
from .routes.signal import router as signal_router
from .routes.status import VERSION, router as status_router
from .routes.timestamp import router as timestamp_router
from .services.payment_gate import PaymentGate

logger = logging.getLogger("basis")


def load_settings() -> dict:
    return {
        "private_key": config.get_private_key(),
        "recipient": config.get_wallet_address(),
        "rpc_url": config.get_rpc_url(),
        "replay_db": config.get_replay_db_path(),
        "identity_db": config.get_identity_db_path(),
        "risk_db": config.get_risk_db_path(),
        "payment_header": config.get_payment_header(),
        "node_id": config.get_node_id(),
        "allowed_origins": config.get_allowed_origins(),
    }


def build_store(settings: dict) -> ReplayStore:
    if settings.get("replay_db"):
        return ShelveReplayStore(settings["replay_db"])
    logger.warning("BASIS_REPLAY_DB not set - replay protection is per-process only")
    return MemoryReplayStore()


def build_lookup(path: Optional[str], name: str) -> Optional[LabelStore]:
    if path:
        return ShelveLookup(path)
    logger.warning(f"{name} store not configured - its tool answers 500")
    return None


def create_app(
    settings: Optional[dict] = None,
    store: Optional[ReplayStore] = None,
    verifier: Optional[ChainVerifier] = None,
    signer: Optional[WitnessSigner] = None,
    identity_store: Optional[LabelStore] = None,
    risk_store: Optional[LabelStore] = None,
) -> FastAPI:
    settings = {**load_settings(), **(settings or {})}

    app = FastAPI(title="Basis: x402 Witness Node", version=VERSION)

    app.state.settings = settings
    app.state.signer = signer
    app.state.identity_store = (
        identity_store if identity_store is not None else build_lookup(settings.get("identity_db"), "Identity")
    )
    app.state.risk_store = risk_store if risk_store is not None else build_lookup(settings.get("risk_db"), "Risk")
    app.state.payment_gate = PaymentGate(
        verifier=verifier or ChainVerifier(settings["rpc_url"]),
        store=store if store is not None else build_store(settings),
        header_name=settings["payment_header"],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings["allowed_origins"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BasisError)
    async def basis_error_handler(request: Request, exc: BasisError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # Never echo internals to the caller
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "message": "An unexpected error occurred while processing your request",
            },
        )

    app.include_router(status_router)
    app.include_router(selftest_router)
    app.include_router(timestamp_router)  # x402-gated
    app.include_router(badge_router)  # x402-gated
    app.include_router(signal_router)  # x402-gated

    return app


app = create_app()
