from __future__ import annotations
import time
from typing import Callable
import structlog
from privwealth.errors import LedgerRejected, classify_rejection
from privwealth.schemas.ledger import TxReceipt, WinnerSet
from privwealth.schemas.session import LeaderboardStatus, LeaderboardView
from privwealth.services.guards import InFlight
from privwealth.services.ledger import Ledger
from privwealth.services.polling import PollingReader
from privwealth.services.session import WalletSession
from privwealth.services.update_bus import UpdateBus

log = structlog.get_logger()


class LeaderboardController(PollingReader):
    """
    Triggers the confidential comparison and follows its result.

    Confirmation of the trigger only means the request was accepted; the
    winners arrive some blocks later. Until a poll sees the WinnerSet differ
    from what it was before the trigger, the board reads "calculating". With
    `max_wait_s` > 0 it gives up after that long and reads "unavailable"
    until a late result shows up.
    """

    name = "winners"

    def __init__(
        self,
        *,
        session: WalletSession,
        ledger: Ledger,
        bus: UpdateBus,
        interval_s: float,
        max_wait_s: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(bus, interval_s)
        self._session = session
        self._ledger = ledger
        self._clock = clock
        self.max_wait_s = max_wait_s
        self.winners: list[str] = []
        self.calculating_since: float | None = None
        self.timed_out = False
        self._baseline: list[str] | None = None
        self._triggering = InFlight("triggerComparison")

    async def load(self) -> None:
        self._observe(await self._ledger.get_winners())

    def _observe(self, winners: list[str]) -> None:
        self.winners = winners
        if self._baseline is None or winners == self._baseline:
            if self.calculating_since is not None and self.max_wait_s > 0:
                if self._clock() - self.calculating_since >= self.max_wait_s:
                    log.info("comparison.wait_expired", waited_s=self.max_wait_s)
                    self.calculating_since = None
                    self.timed_out = True
            return
        log.info("comparison.result", winners=len(winners), tie=len(winners) > 1)
        self._baseline = None
        self.calculating_since = None
        self.timed_out = False

    def drop_cache(self) -> None:
        super().drop_cache()
        self.winners = []
        self._baseline = None
        self.calculating_since = None
        self.timed_out = False

    async def poll_winners(self) -> WinnerSet:
        await self.refresh()
        return WinnerSet(winners=list(self.winners))

    async def trigger_comparison(self) -> TxReceipt:
        signer = self._session.require_signer()
        with self._triggering:
            baseline = list(self.winners)
            try:
                tx_hash = await self._ledger.trigger_comparison(signer)
            except LedgerRejected as e:
                raise classify_rejection(e.reason) from e
            receipt = await self._ledger.wait_for_receipt(tx_hash)
            if receipt.status != "success":
                raise classify_rejection(receipt.reason)

            log.info("comparison.triggered", identity=signer.identity, tx_hash=tx_hash)
            self._baseline = baseline
            self.calculating_since = self._clock()
            self.timed_out = False
            await self.bus.bump("comparison")
            return receipt

    @property
    def status(self) -> LeaderboardStatus:
        if self.calculating_since is not None:
            return "calculating"
        if self.timed_out:
            return "unavailable"
        if not self.winners:
            return "empty"
        return "tie" if len(self.winners) > 1 else "winner"

    def view(self) -> LeaderboardView:
        return LeaderboardView(status=self.status, winners=list(self.winners), is_tie=len(self.winners) > 1)
