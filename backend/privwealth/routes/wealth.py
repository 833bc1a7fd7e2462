from __future__ import annotations
from fastapi import APIRouter, Depends
from privwealth.deps import get_runtime
from privwealth.schemas.session import OwnWealthView, ParticipantsView
from privwealth.services.runtime import Runtime

router = APIRouter(tags=["wealth"])

@router.get("/wealth/own", response_model=OwnWealthView)
async def own_wealth(rt: Runtime = Depends(get_runtime)):
    rt.session.require_signer()
    await rt.reveal.refresh()
    return rt.reveal.view()

@router.post("/wealth/own/toggle", response_model=OwnWealthView)
async def toggle_own_wealth(rt: Runtime = Depends(get_runtime)):
    return await rt.reveal.toggle_reveal()

@router.get("/participants", response_model=ParticipantsView)
async def participants(rt: Runtime = Depends(get_runtime)):
    await rt.participants.refresh()
    return rt.participants.view()
