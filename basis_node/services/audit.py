"""
Request audit log.

Entries are kept in memory (for the status endpoint) and, when Supabase is
configured, inserted into its request_logs table. Runs as a background
task after the response; failures are logged and dropped.
"""
import time
import logging
from typing import Optional

import httpx
from fastapi import BackgroundTasks, Request

from ..config import get_supabase_credentials

logger = logging.getLogger("audit")

MAX_RECENT_LOGS = 500

# Most recent entries, newest last
_request_logs: list[dict] = []


def build_log_entry(
    tool_name: str,
    status: int,
    wallet_address: Optional[str] = None,
    tx_hash: Optional[str] = None,
    **meta,
) -> dict:
    meta = {k: v for k, v in meta.items() if v is not None}
    if tx_hash:
        meta["tx_hash"] = tx_hash
    return {
        "tool_name": tool_name,
        "wallet_address": wallet_address,
        "status": status,
        "meta": meta,
        "logged_at": int(time.time()),
    }


async def log_request(entry: dict, transport: Optional[httpx.AsyncBaseTransport] = None):
    """Record entry locally and ship it to Supabase. Never raises."""
    _request_logs.append(entry)
    del _request_logs[:-MAX_RECENT_LOGS]

    supabase_url, supabase_key = get_supabase_credentials()
    if not supabase_url or not supabase_key:
        logger.debug("Supabase credentials not configured, skipping remote log")
        return

    try:
        async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
            response = await client.post(
                f"{supabase_url.rstrip('/')}/rest/v1/request_logs",
                headers={
                    "apikey": supabase_key,
                    "Authorization": f"Bearer {supabase_key}",
                    "Content-Type": "application/json",
                    "Prefer": "return=minimal",
                },
                json=[entry],
            )
            if response.status_code >= 300:
                logger.warning(f"Failed to log request to Supabase: {response.status_code} - {response.text}")
    except Exception as e:
        logger.warning(f"Unexpected error during async logging: {e}")


def schedule_request_log(
    background_tasks: BackgroundTasks,
    request: Request,
    tool_name: str,
    status: int,
    **meta,
):
    """Queue an audit entry carrying the payer identity set by the gate."""
    entry = build_log_entry(
        tool_name=tool_name,
        status=status,
        wallet_address=getattr(request.state, "wallet_address", None),
        tx_hash=getattr(request.state, "tx_hash", None),
        **meta,
    )
    background_tasks.add_task(log_request, entry)


def get_recent_logs(limit: int = 50) -> list[dict]:
    return list(reversed(_request_logs[-limit:]))


def clear_request_logs():
    """Clear the in-memory log (for testing)."""
    _request_logs.clear()
