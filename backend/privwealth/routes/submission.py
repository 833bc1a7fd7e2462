from __future__ import annotations
from fastapi import APIRouter, Depends, status
from privwealth.deps import get_runtime
from privwealth.schemas.session import ConfirmAmountRequest, SubmissionView
from privwealth.services.runtime import Runtime

router = APIRouter(prefix="/submission", tags=["submission"])

@router.get("", response_model=SubmissionView)
async def get_submission(rt: Runtime = Depends(get_runtime)):
    await rt.participants.refresh()
    return rt.submission.view()

@router.post("/confirm", response_model=SubmissionView)
async def confirm_amount(payload: ConfirmAmountRequest, rt: Runtime = Depends(get_runtime)):
    await rt.submission.confirm_amount(payload.amount)
    return rt.submission.view()

@router.post("", response_model=SubmissionView, status_code=status.HTTP_201_CREATED)
async def submit(rt: Runtime = Depends(get_runtime)):
    await rt.submission.submit()
    return rt.submission.view()
