from __future__ import annotations
from decimal import Decimal, InvalidOperation
import structlog
from privwealth.errors import (
    AlreadySubmitted,
    EncryptionFailure,
    LedgerRejected,
    OperationInProgress,
    ValidationError,
    classify_rejection,
)
from privwealth.schemas.ledger import TxReceipt
from privwealth.schemas.session import SubmissionSession, SubmissionView, preview_handle
from privwealth.services.confidential import MAX_VALUE
from privwealth.services.gateway import EncryptionGateway
from privwealth.services.guards import InFlight
from privwealth.services.ledger import Ledger
from privwealth.services.participants import ParticipantsController
from privwealth.services.session import WalletSession
from privwealth.services.update_bus import UpdateBus

log = structlog.get_logger()


def parse_amount(raw) -> int:
    """Accept a positive whole number, as text or number. Raises ValidationError."""
    text = "" if raw is None else str(raw).strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationError()
    if not value.is_finite() or value <= 0:
        raise ValidationError()
    if value >= MAX_VALUE:
        raise ValidationError("Amount is too large.")
    if value != value.to_integral_value():
        raise ValidationError("Amount must be a whole number.")
    return int(value)


class SubmissionController:
    """
    Idle -> Encrypting -> Idle(pending handle) -> Submitting -> Idle.

    The pending handle is shown to the user but nothing reaches the ledger
    until `submit`. One submission per identity; a rejected submit drops the
    pending handle rather than retrying it.
    """

    def __init__(
        self,
        *,
        session: WalletSession,
        ledger: Ledger,
        gateway: EncryptionGateway,
        bus: UpdateBus,
        participants: ParticipantsController,
        destination: str,
        explorer_tx_url: str | None = None,
    ):
        self._session = session
        self._ledger = ledger
        self._gateway = gateway
        self._bus = bus
        self._participants = participants
        self._destination = destination
        self._explorer_tx_url = explorer_tx_url
        self._encrypting = InFlight("encrypt")
        self._submitting = InFlight("submit")
        self.state = SubmissionSession()
        self.last_tx_hash: str | None = None
        session.on_change(self._reset)

    def _reset(self) -> None:
        self.state = SubmissionSession()
        self.last_tx_hash = None

    async def confirm_amount(self, raw) -> str | None:
        """Encrypt `raw` into a pending handle. Returns None if the session moved on meanwhile."""
        amount = parse_amount(raw)
        signer = self._session.require_signer()
        if self.state.status == "submitting":
            raise OperationInProgress("A submission is in progress.")

        with self._encrypting:
            epoch = self._session.epoch
            self.state = SubmissionSession(raw_amount=str(raw), status="encrypting")
            try:
                handle = await self._gateway.encrypt(amount, signer.identity, self._destination)
            except EncryptionFailure:
                if self._session.is_current(epoch):
                    self.state = SubmissionSession(raw_amount=str(raw))
                log.warning("submission.encrypt_failed", identity=signer.identity)
                raise

            if not self._session.is_current(epoch):
                log.info("submission.encrypt_discarded", identity=signer.identity, epoch=epoch)
                return None
            self.state = SubmissionSession(raw_amount=str(raw), pending_handle=handle)
            log.info("submission.encrypted", identity=signer.identity, preview=preview_handle(handle))
            return handle

    async def submit(self) -> TxReceipt:
        signer = self._session.require_signer()
        handle = self.state.pending_handle
        if not handle:
            raise ValidationError("Please confirm your amount first.")

        with self._submitting:
            epoch = self._session.epoch
            if await self._participants.has_submitted(signer.identity):
                self.state = SubmissionSession()
                raise AlreadySubmitted()

            self.state.status = "submitting"
            try:
                try:
                    tx_hash = await self._ledger.submit(signer, handle)
                except LedgerRejected as e:
                    raise classify_rejection(e.reason) from e
                log.info("submission.sent", identity=signer.identity, tx_hash=tx_hash)
                receipt = await self._ledger.wait_for_receipt(tx_hash)
                if receipt.status != "success":
                    raise classify_rejection(receipt.reason)
            except AlreadySubmitted:
                if self._session.is_current(epoch):
                    self.state = SubmissionSession()
                await self._participants.refresh()
                raise
            finally:
                if self._session.is_current(epoch) and self.state.status == "submitting":
                    self.state.status = "idle"

            log.info("submission.confirmed", identity=signer.identity, tx_hash=tx_hash, block=receipt.block_number)
            if self._session.is_current(epoch):
                self.state = SubmissionSession()
                self.last_tx_hash = tx_hash
            await self._bus.bump("submit")
            return receipt

    def explorer_url(self, tx_hash: str | None) -> str | None:
        if not tx_hash or not self._explorer_tx_url:
            return None
        return self._explorer_tx_url.format(tx_hash=tx_hash)

    def view(self) -> SubmissionView:
        identity = self._session.identity
        return SubmissionView(
            identity=identity,
            status=self.state.status,
            has_submitted=self._participants.contains(identity),
            pending_handle=self.state.pending_handle,
            pending_preview=preview_handle(self.state.pending_handle),
            last_tx_hash=self.last_tx_hash,
            explorer_url=self.explorer_url(self.last_tx_hash),
        )
