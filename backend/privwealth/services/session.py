from __future__ import annotations
from typing import Callable
import structlog
from privwealth.errors import NotConnected
from privwealth.services.signer import Signer

log = structlog.get_logger()


class WalletSession:
    """
    The connected signer. Every identity change bumps `epoch`; work started
    under an older epoch must not write its result into the new session.
    """

    def __init__(self) -> None:
        self.signer: Signer | None = None
        self.epoch = 0
        self._listeners: list[Callable[[], None]] = []

    @property
    def identity(self) -> str | None:
        return self.signer.identity if self.signer else None

    def on_change(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def is_current(self, epoch: int) -> bool:
        return epoch == self.epoch

    def require_signer(self) -> Signer:
        if self.signer is None:
            raise NotConnected()
        return self.signer

    def connect(self, signer: Signer) -> None:
        if self.signer is not None and self.signer.identity == signer.identity:
            return
        self._switch(signer)

    def disconnect(self) -> None:
        if self.signer is not None:
            self._switch(None)

    def _switch(self, signer: Signer | None) -> None:
        self.signer = signer
        self.epoch += 1
        log.info("session.identity_changed", identity=self.identity, epoch=self.epoch)
        for callback in self._listeners:
            callback()
