from __future__ import annotations
import structlog
from privwealth.errors import ValidationError
from privwealth.schemas.session import OwnWealthView, RevealCache
from privwealth.services.gateway import EncryptionGateway
from privwealth.services.ledger import Ledger
from privwealth.services.polling import PollingReader
from privwealth.services.session import WalletSession
from privwealth.services.update_bus import UpdateBus

log = structlog.get_logger()


class RevealController(PollingReader):
    """Own-value panel: tracks the account's stored handle and toggles its plaintext."""

    name = "own_handle"

    def __init__(
        self,
        *,
        session: WalletSession,
        ledger: Ledger,
        gateway: EncryptionGateway,
        bus: UpdateBus,
        interval_s: float,
    ):
        super().__init__(bus, interval_s)
        self._session = session
        self._ledger = ledger
        self._gateway = gateway
        self.handle: str | None = None
        self.cache: RevealCache | None = None
        self.revealed = False
        self._revealing: int | None = None  # epoch of the reveal in flight
        session.on_change(self.drop_cache)

    async def load(self) -> None:
        identity = self._session.identity
        epoch = self._session.epoch
        handle = await self._ledger.get_own_handle(identity) if identity else None
        if self._session.is_current(epoch):
            self._observe(handle)

    def _observe(self, handle: str | None) -> None:
        self.handle = handle
        if self.cache is not None and self.cache.handle != handle:
            log.info("reveal.cache_invalidated", identity=self._session.identity)
            self.cache = None
            self.revealed = False

    def drop_cache(self) -> None:
        super().drop_cache()
        self.handle = None
        self.cache = None
        self.revealed = False
        self._revealing = None

    @property
    def decrypting(self) -> bool:
        return self._revealing is not None and self._revealing == self._session.epoch

    async def toggle_reveal(self) -> OwnWealthView:
        signer = self._session.require_signer()
        if self.revealed:
            self.revealed = False
            return self.view()
        if self.decrypting:
            log.info("reveal.suppressed", identity=signer.identity)
            return self.view()

        if self.handle is None:
            # read directly; a poll already in flight would defer refresh()
            epoch = self._session.epoch
            handle = await self._ledger.get_own_handle(signer.identity)
            if not self._session.is_current(epoch):
                return self.view()
            self._observe(handle)
        handle = self.handle
        if handle is None:
            raise ValidationError("No wealth has been submitted from this account yet.")

        if self.cache is not None and self.cache.handle == handle and self.cache.plaintext is not None:
            self.revealed = True
            return self.view()

        epoch = self._session.epoch
        self._revealing = epoch
        try:
            value = await self._gateway.reveal(handle, signer)
        finally:
            if self._revealing == epoch:
                self._revealing = None

        if not self._session.is_current(epoch) or self.handle != handle:
            log.info("reveal.discarded", identity=signer.identity, epoch=epoch)
            return self.view()
        self.cache = RevealCache(handle=handle, plaintext=value)
        self.revealed = True
        log.info("reveal.cached", identity=signer.identity)
        return self.view()

    def view(self) -> OwnWealthView:
        return OwnWealthView(
            identity=self._session.identity,
            handle=self.handle,
            revealed=self.revealed,
            decrypting=self.decrypting,
            value=self.cache.plaintext if (self.revealed and self.cache) else None,
        )
