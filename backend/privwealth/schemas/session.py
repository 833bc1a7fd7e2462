from __future__ import annotations
from dataclasses import dataclass
from typing import Literal
from pydantic import BaseModel

SubmissionStatus = Literal["idle", "encrypting", "submitting"]
LeaderboardStatus = Literal["empty", "winner", "tie", "calculating", "unavailable"]

PREVIEW_CHARS = 32

def preview_handle(handle: str | None) -> str | None:
    if not handle:
        return None
    return handle[:PREVIEW_CHARS] + "..."

@dataclass
class SubmissionSession:
    """Client-local state of one submission attempt."""
    raw_amount: str | None = None
    status: SubmissionStatus = "idle"
    pending_handle: str | None = None

@dataclass
class RevealCache:
    handle: str
    plaintext: int | None = None

# ---------- HTTP views ----------

class AccountsView(BaseModel):
    accounts: list[str]
    connected: str | None = None

class ConnectRequest(BaseModel):
    account: str

class ConfirmAmountRequest(BaseModel):
    amount: str

class ResetRequest(BaseModel):
    confirm: bool = False

class SubmissionView(BaseModel):
    identity: str | None
    status: SubmissionStatus
    has_submitted: bool
    pending_handle: str | None = None
    pending_preview: str | None = None
    last_tx_hash: str | None = None
    explorer_url: str | None = None

class OwnWealthView(BaseModel):
    identity: str | None
    handle: str | None = None
    revealed: bool = False
    decrypting: bool = False
    value: int | None = None

class ParticipantsView(BaseModel):
    participants: list[str]
    count: int

class LeaderboardView(BaseModel):
    status: LeaderboardStatus
    winners: list[str]
    is_tie: bool
