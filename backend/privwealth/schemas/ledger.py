from __future__ import annotations
from typing import Literal
from pydantic import BaseModel, ConfigDict

TxStatus = Literal["success", "failure"]

class TxReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    tx_hash: str
    status: TxStatus
    block_number: int
    reason: str | None = None

class SubmissionRecord(BaseModel):
    """One participant's committed ciphertext handle. Never mutated."""
    model_config = ConfigDict(frozen=True)

    owner: str
    handle: str

class WinnerSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    winners: list[str] = []

    @property
    def is_empty(self) -> bool:
        return not self.winners

    @property
    def is_tie(self) -> bool:
        return len(self.winners) > 1
