from __future__ import annotations
import asyncio
import contextlib
import structlog
from privwealth.errors import TransportError
from privwealth.services.update_bus import UpdateBus, UpdateSignal

log = structlog.get_logger()


class PollingReader:
    """
    Base for read-side controllers: re-reads ledger state on a fixed timer and
    whenever the UpdateBus fires (subscribed from construction until `stop`).
    Reads never overlap themselves; a request that arrives mid-read is folded
    into one more pass after the current one.
    """

    name = "reader"

    def __init__(self, bus: UpdateBus, interval_s: float):
        self.bus = bus
        self.interval_s = interval_s
        self.loaded = False
        self.last_error: str | None = None
        self._in_flight = False
        self._dirty = False
        self._task: asyncio.Task | None = None
        self._unsubscribe = bus.subscribe(self.on_update)

    async def load(self) -> None:
        raise NotImplementedError

    def drop_cache(self) -> None:
        self.loaded = False

    async def refresh(self) -> bool:
        """Returns False when the read was deferred to a running pass or failed."""
        if self._in_flight:
            self._dirty = True
            return False
        self._in_flight = True
        try:
            while True:
                self._dirty = False
                try:
                    await self.load()
                except TransportError as e:
                    self.last_error = e.message
                    log.warning("poll.transport_error", reader=self.name, error=e.message)
                    return False
                self.loaded = True
                self.last_error = None
                if not self._dirty:
                    return True
        finally:
            self._in_flight = False

    async def on_update(self, signal: UpdateSignal) -> None:
        if signal.drops_caches:
            self.drop_cache()
        await self.refresh()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(self.on_update)
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"poll:{self.name}")

    async def _run(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception as e:
                # the timer outlives any single bad read
                log.error("poll.failed", reader=self.name, error=repr(e))
            await asyncio.sleep(self.interval_s)

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
