from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from privwealth.deps import get_runtime
from privwealth.schemas.session import AccountsView, ConnectRequest
from privwealth.security import normalize_identity
from privwealth.services.runtime import Runtime

router = APIRouter(prefix="/session", tags=["session"])

@router.get("", response_model=AccountsView)
@router.get("/accounts", response_model=AccountsView)
async def list_accounts(rt: Runtime = Depends(get_runtime)):
    return AccountsView(accounts=rt.keyring.identities, connected=rt.session.identity)

@router.post("/connect", response_model=AccountsView)
async def connect(payload: ConnectRequest, rt: Runtime = Depends(get_runtime)):
    try:
        identity = normalize_identity(payload.account)
    except ValueError:
        raise HTTPException(status_code=422, detail="Not an account address")
    signer = rt.keyring.get(identity)
    if signer is None:
        raise HTTPException(status_code=404, detail="Unknown account")
    rt.session.connect(signer)
    await rt.refresh_all()
    return AccountsView(accounts=rt.keyring.identities, connected=rt.session.identity)

@router.post("/disconnect", response_model=AccountsView)
async def disconnect(rt: Runtime = Depends(get_runtime)):
    rt.session.disconnect()
    return AccountsView(accounts=rt.keyring.identities, connected=None)
