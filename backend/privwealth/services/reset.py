from __future__ import annotations
import structlog
from privwealth.errors import LedgerRejected, ValidationError, classify_rejection
from privwealth.schemas.ledger import TxReceipt
from privwealth.services.guards import InFlight
from privwealth.services.ledger import Ledger
from privwealth.services.session import WalletSession
from privwealth.services.update_bus import UpdateBus

log = structlog.get_logger()


class ResetController:
    """Clears every record, the participant list and the winners. Destructive."""

    def __init__(self, *, session: WalletSession, ledger: Ledger, bus: UpdateBus):
        self._session = session
        self._ledger = ledger
        self._bus = bus
        self._resetting = InFlight("reset")

    async def reset(self, confirm: bool = False) -> TxReceipt:
        if not confirm:
            raise ValidationError("Reset clears every submission; confirm it explicitly.")
        signer = self._session.require_signer()
        with self._resetting:
            try:
                tx_hash = await self._ledger.reset_all(signer)
            except LedgerRejected as e:
                raise classify_rejection(e.reason) from e
            receipt = await self._ledger.wait_for_receipt(tx_hash)
            if receipt.status != "success":
                raise classify_rejection(receipt.reason)
            log.warning("reset.confirmed", identity=signer.identity, tx_hash=tx_hash)
            # readers drop their caches on a reset signal
            await self._bus.bump("reset")
            return receipt
