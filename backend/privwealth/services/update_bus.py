from __future__ import annotations
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal
import structlog

log = structlog.get_logger()

UpdateReason = Literal["submit", "comparison", "reset"]


@dataclass(frozen=True)
class UpdateSignal:
    stamp: int
    reason: UpdateReason
    at: float

    @property
    def drops_caches(self) -> bool:
        return self.reason == "reset"


Subscriber = Callable[[UpdateSignal], Awaitable[None]]


class UpdateBus:
    """
    Process-wide "a confirmed write happened" signal.

    Writers call `bump` after ledger confirmation only. Every subscriber is
    awaited in turn, so by the time `bump` returns all read controllers have
    re-read the ledger (or queued a re-read behind one already running).
    """

    def __init__(self) -> None:
        self._stamp = 0
        self._subscribers: list[Subscriber] = []

    @property
    def stamp(self) -> int:
        return self._stamp

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def bump(self, reason: UpdateReason) -> UpdateSignal:
        self._stamp += 1
        signal = UpdateSignal(stamp=self._stamp, reason=reason, at=time.time())
        log.info("update_bus.bump", stamp=signal.stamp, reason=reason, subscribers=len(self._subscribers))
        for callback in list(self._subscribers):
            try:
                await callback(signal)
            except Exception as e:
                # a failing reader must not fail the write that already confirmed;
                # it stays subscribed and gets the next signal
                log.error("update_bus.subscriber_failed", stamp=signal.stamp, error=repr(e))
        return signal
