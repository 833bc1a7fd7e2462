from __future__ import annotations
from privwealth.schemas.session import ParticipantsView
from privwealth.services.ledger import Ledger
from privwealth.services.polling import PollingReader
from privwealth.services.update_bus import UpdateBus


class ParticipantsController(PollingReader):
    name = "participants"

    def __init__(self, *, ledger: Ledger, bus: UpdateBus, interval_s: float):
        super().__init__(bus, interval_s)
        self._ledger = ledger
        self.participants: list[str] = []

    async def load(self) -> None:
        self.participants = await self._ledger.get_participants()

    def drop_cache(self) -> None:
        super().drop_cache()
        self.participants = []

    def contains(self, identity: str | None) -> bool:
        return identity is not None and identity.lower() in self.participants

    async def has_submitted(self, identity: str) -> bool:
        """Optimistic client-side gate; the ledger enforces it for real."""
        if not self.loaded:
            await self.refresh()
        return self.contains(identity)

    def view(self) -> ParticipantsView:
        return ParticipantsView(participants=list(self.participants), count=len(self.participants))
