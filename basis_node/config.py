"""
Environment configuration for the Basis witness node.

Secrets are never defaulted. Callers decide what a missing value means.
"""
import os
from typing import Optional

DEFAULT_RPC_URL = "https://mainnet.base.org"
DEFAULT_PAYMENT_HEADER = "Authorization"
DEFAULT_NODE_ID = "edge-01"


def get_private_key() -> Optional[str]:
    """Signing key (0x + 64 hex)."""
    return os.environ.get("BASIS_PRIVATE_KEY")


def get_wallet_address() -> Optional[str]:
    """Recipient of x402 payments, also the expected signer address."""
    return os.environ.get("BASIS_WALLET_ADDRESS")


def get_rpc_url() -> str:
    return os.environ.get("BASIS_RPC_URL") or DEFAULT_RPC_URL


def get_replay_db_path() -> Optional[str]:
    """Shelve file for the replay store. In-memory store when unset."""
    return os.environ.get("BASIS_REPLAY_DB")


def get_identity_db_path() -> Optional[str]:
    """Shelve file of address -> BLOCK/VIP for the badge tool."""
    return os.environ.get("BASIS_IDENTITY_DB")


def get_risk_db_path() -> Optional[str]:
    """Shelve file of address or domain -> SANCTIONED/SUSPICIOUS/VERIFIED."""
    return os.environ.get("BASIS_RISK_DB")


def get_payment_header() -> str:
    return os.environ.get("BASIS_PAYMENT_HEADER") or DEFAULT_PAYMENT_HEADER


def get_node_id() -> str:
    return os.environ.get("BASIS_NODE_ID") or DEFAULT_NODE_ID


def get_supabase_credentials() -> tuple[Optional[str], Optional[str]]:
    return os.environ.get("SUPABASE_URL"), os.environ.get("SUPABASE_KEY")


def get_allowed_origins() -> list[str]:
    raw = os.environ.get("BASIS_ALLOWED_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()]
