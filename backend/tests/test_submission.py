import asyncio
import pytest
from conftest import Gate, account, make_settings, submit_as
from privwealth.errors import (
    AlreadySubmitted,
    EncryptionFailure,
    InsufficientResources,
    LedgerRejected,
    NotConnected,
    OperationInProgress,
    SignerRejected,
    TransactionFailed,
    ValidationError,
)
from privwealth.schemas.ledger import TxReceipt
from privwealth.services.ledger import InMemoryLedger
from privwealth.services.runtime import build_runtime
from privwealth.services.submission import parse_amount


class CountingGateway:
    def __init__(self, inner, gate: Gate | None = None, fail: bool = False):
        self.inner = inner
        self.destination = inner.destination
        self.gate = gate
        self.fail = fail
        self.encrypt_calls = 0

    async def encrypt(self, amount, owner, destination):
        self.encrypt_calls += 1
        if self.gate:
            await self.gate.wait()
        if self.fail:
            raise EncryptionFailure()
        return await self.inner.encrypt(amount, owner, destination)

    async def reveal(self, handle, signer):
        return await self.inner.reveal(handle, signer)


def _with_gateway(runtime, **kw):
    gw = CountingGateway(runtime.gateway, **kw)
    return build_runtime(runtime.settings, ledger=runtime.ledger, gateway=gw, keyring=runtime.keyring), gw


@pytest.mark.parametrize("raw", ["", "abc", "0", "-5", "1.5", "nan", "inf", None, "1e90"])
def test_parse_amount_rejects_bad_input(raw):
    with pytest.raises(ValidationError):
        parse_amount(raw)

def test_parse_amount_accepts_whole_numbers():
    assert parse_amount("100") == 100
    assert parse_amount(" 250 ") == 250
    assert parse_amount("1e3") == 1000
    assert parse_amount(7) == 7

@pytest.mark.asyncio
async def test_invalid_amount_never_reaches_gateway(runtime, alice):
    rt, gw = _with_gateway(runtime)
    rt.session.connect(alice)
    with pytest.raises(ValidationError):
        await rt.submission.confirm_amount("-1")
    assert gw.encrypt_calls == 0
    assert rt.submission.state.status == "idle"

@pytest.mark.asyncio
async def test_confirm_requires_connected_identity(runtime):
    with pytest.raises(NotConnected):
        await runtime.submission.confirm_amount("10")

@pytest.mark.asyncio
async def test_submit_without_pending_handle(runtime, alice):
    runtime.session.connect(alice)
    with pytest.raises(ValidationError):
        await runtime.submission.submit()

@pytest.mark.asyncio
async def test_confirm_then_submit(runtime, alice):
    runtime.session.connect(alice)
    handle = await runtime.submission.confirm_amount("100")
    view = runtime.submission.view()
    assert view.pending_handle == handle
    assert view.pending_preview == handle[:32] + "..."
    assert await runtime.ledger.get_participants() == []

    receipt = await runtime.submission.submit()
    assert receipt.status == "success"
    assert await runtime.ledger.get_participants() == [alice.identity]
    assert await runtime.ledger.get_own_handle(alice.identity) == handle
    assert runtime.bus.stamp == 1

    view = runtime.submission.view()
    assert view.status == "idle"
    assert view.pending_handle is None
    assert view.has_submitted is True
    assert view.last_tx_hash == receipt.tx_hash
    assert view.explorer_url.endswith(receipt.tx_hash)

@pytest.mark.asyncio
async def test_second_submission_is_rejected_and_first_handle_kept(runtime, alice):
    await submit_as(runtime, alice, 100)
    first = await runtime.ledger.get_own_handle(alice.identity)

    await runtime.submission.confirm_amount("999")
    with pytest.raises(AlreadySubmitted):
        await runtime.submission.submit()

    assert await runtime.ledger.get_participants() == [alice.identity]
    assert await runtime.ledger.get_own_handle(alice.identity) == first
    assert runtime.submission.state.pending_handle is None
    assert runtime.bus.stamp == 1

@pytest.mark.asyncio
async def test_ledger_enforces_single_submission_when_client_view_is_stale(runtime, alice):
    await submit_as(runtime, alice, 100)
    first = await runtime.ledger.get_own_handle(alice.identity)
    # client believes nobody has submitted yet
    runtime.participants.participants = []

    await runtime.submission.confirm_amount("5")
    with pytest.raises(AlreadySubmitted):
        await runtime.submission.submit()

    assert runtime.participants.contains(alice.identity)
    assert runtime.submission.state.pending_handle is None
    assert await runtime.ledger.get_own_handle(alice.identity) == first

@pytest.mark.asyncio
async def test_each_identity_submits_once(runtime, alice, bob):
    await submit_as(runtime, alice, 1)
    await submit_as(runtime, bob, 2)
    participants = await runtime.ledger.get_participants()
    assert participants == [alice.identity, bob.identity]

@pytest.mark.asyncio
async def test_declined_signature_keeps_pending_handle(runtime, alice):
    runtime.session.connect(alice)
    handle = await runtime.submission.confirm_amount("10")
    alice.auto_approve = False
    with pytest.raises(SignerRejected):
        await runtime.submission.submit()
    assert runtime.submission.state.pending_handle == handle
    assert runtime.submission.state.status == "idle"
    assert await runtime.ledger.get_participants() == []
    assert runtime.bus.stamp == 0

    alice.auto_approve = True
    await runtime.submission.submit()
    assert await runtime.ledger.get_participants() == [alice.identity]


class RevertingLedger(InMemoryLedger):
    def __init__(self, *a, reject_reason=None, receipt_failure=False, **kw):
        super().__init__(*a, **kw)
        self.reject_reason = reject_reason
        self.receipt_failure = receipt_failure

    async def submit(self, signer, handle):
        if self.reject_reason:
            raise LedgerRejected(self.reject_reason)
        return await super().submit(signer, handle)

    async def wait_for_receipt(self, tx_hash):
        receipt = await super().wait_for_receipt(tx_hash)
        if self.receipt_failure:
            return TxReceipt(tx_hash=tx_hash, status="failure", block_number=receipt.block_number, reason="execution reverted")
        return receipt


def _reverting_runtime(runtime, **kw):
    ledger = RevertingLedger(runtime.ledger.service, destination=runtime.ledger.destination, **kw)
    return build_runtime(runtime.settings, ledger=ledger, gateway=runtime.gateway, keyring=runtime.keyring)

@pytest.mark.asyncio
async def test_insufficient_funds_is_classified(runtime, alice):
    rt = _reverting_runtime(runtime, reject_reason="insufficient funds for gas * price + value")
    rt.session.connect(alice)
    await rt.submission.confirm_amount("10")
    with pytest.raises(InsufficientResources):
        await rt.submission.submit()
    assert rt.submission.state.pending_handle is not None

@pytest.mark.asyncio
async def test_failed_receipt_is_transaction_failed(runtime, alice):
    rt = _reverting_runtime(runtime, receipt_failure=True)
    rt.session.connect(alice)
    await rt.submission.confirm_amount("10")
    with pytest.raises(TransactionFailed):
        await rt.submission.submit()
    assert rt.bus.stamp == 0
    assert rt.submission.state.status == "idle"

@pytest.mark.asyncio
async def test_encryption_failure_returns_to_idle(runtime, alice):
    rt, gw = _with_gateway(runtime, fail=True)
    rt.session.connect(alice)
    with pytest.raises(EncryptionFailure):
        await rt.submission.confirm_amount("10")
    assert rt.submission.state.status == "idle"
    assert rt.submission.state.pending_handle is None

@pytest.mark.asyncio
async def test_overlapping_confirm_is_refused(runtime, alice):
    gate = Gate()
    rt, gw = _with_gateway(runtime, gate=gate)
    rt.session.connect(alice)
    first = asyncio.create_task(rt.submission.confirm_amount("10"))
    await gate.entered.wait()
    assert rt.submission.state.status == "encrypting"
    with pytest.raises(OperationInProgress):
        await rt.submission.confirm_amount("11")
    gate.release.set()
    assert await first
    assert gw.encrypt_calls == 1

@pytest.mark.asyncio
async def test_identity_change_discards_encryption_result(runtime, alice, bob):
    gate = Gate()
    rt, _ = _with_gateway(runtime, gate=gate)
    rt.session.connect(alice)
    pending = asyncio.create_task(rt.submission.confirm_amount("10"))
    await gate.entered.wait()

    rt.session.connect(bob)
    gate.release.set()
    assert await pending is None
    assert rt.submission.state.pending_handle is None
    assert rt.submission.view().identity == bob.identity

@pytest.mark.asyncio
async def test_mined_blocks_confirm_submission():
    rt = build_runtime(make_settings(local_block_time_ms=20))
    alice = account(rt, "alice")
    await submit_as(rt, alice, 3)
    assert rt.ledger.block_number == 1
