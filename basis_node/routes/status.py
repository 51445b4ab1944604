from fastapi import APIRouter

router = APIRouter(tags=["status"])

VERSION = "2.0.0"

MANIFEST = {
    "name": "basis",
    "description": "Pay-per-call edge tools that return signed witness certificates",
    "price_per_use": "0.001 USDC (Base mainnet, x402)",
    "tools": [
        {
            "name": "basis_hash",
            "description": "Signed proof-of-existence receipt for data or a keccak-256 hash",
            "endpoint": "/timestamp",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "data": {"type": "string", "description": "Data to timestamp"},
                    "is_hash": {"type": "boolean", "description": "Data is already a 0x keccak hash"},
                },
                "required": ["data"],
            },
        },
        {
            "name": "basis_badge",
            "description": "Signed session badge: BANNED, VERIFIED or NEUTRAL status for a wallet",
            "endpoint": "/issue_badge",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "wallet_address": {"type": "string", "description": "Ethereum wallet address (0x + 40 hex)"},
                },
                "required": ["wallet_address"],
            },
        },
        {
            "name": "basis_signal",
            "description": "Signed, timestamped risk score (0-100) for a wallet address or domain",
            "endpoint": "/check_risk",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "target": {"type": "string", "description": "Wallet address (0x...) or domain name"},
                },
                "required": ["target"],
            },
        },
    ],
}


@router.get("/")
def index():
    return {"status": "Basis: Witness Node is Online", "version": f"v{VERSION}-witness"}


@router.get("/healthz")
def health():
    return {"ok": True}


@router.get("/manifest.json")
def manifest():
    return MANIFEST
