from __future__ import annotations
from fastapi import APIRouter, Depends, status
from privwealth.deps import get_runtime
from privwealth.schemas.session import LeaderboardView, ResetRequest
from privwealth.services.runtime import Runtime

router = APIRouter(tags=["leaderboard"])

@router.get("/leaderboard", response_model=LeaderboardView)
async def leaderboard(rt: Runtime = Depends(get_runtime)):
    await rt.leaderboard.refresh()
    return rt.leaderboard.view()

@router.post("/leaderboard/trigger", response_model=LeaderboardView, status_code=status.HTTP_202_ACCEPTED)
async def trigger_comparison(rt: Runtime = Depends(get_runtime)):
    await rt.leaderboard.trigger_comparison()
    return rt.leaderboard.view()

@router.post("/reset")
async def reset(payload: ResetRequest, rt: Runtime = Depends(get_runtime)):
    receipt = await rt.resetter.reset(confirm=payload.confirm)
    return {"status": "reset", "tx_hash": receipt.tx_hash, "block_number": receipt.block_number}
