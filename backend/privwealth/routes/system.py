from __future__ import annotations
from fastapi import APIRouter, Request
from datetime import datetime, timezone
from privwealth.config import settings

router = APIRouter()

@router.get("/health")
async def health(request: Request):
    runtime = request.app.state.runtime
    return {
        "status": "ok",
        "env": settings.environment,
        "ledger_mode": runtime.settings.ledger_mode,
        "update_stamp": runtime.bus.stamp,
        "time": datetime.now(timezone.utc).isoformat(),
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
    }

@router.get("/version")
async def version():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
        "chain_id": settings.chain_id,
    }
