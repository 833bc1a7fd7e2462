import asyncio
import json
import httpx
import pytest
from privwealth.errors import UNCONFIRMED_BROADCAST, LedgerRejected, TransactionFailed, TransportError, classify_rejection
from privwealth.services.ledger import RpcLedger
from privwealth.services.participants import ParticipantsController
from privwealth.services.signer import LocalSigner
from privwealth.services.update_bus import UpdateBus

URL = "http://node.test/rpc"
ALICE = LocalSigner.from_seed("alice")

def _ledger(handler, **kw) -> RpcLedger:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RpcLedger(URL, client=client, receipt_poll_s=0, **kw)

def _rpc(request: httpx.Request):
    body = json.loads(request.content)
    return body["id"], body["method"], body["params"]

@pytest.mark.asyncio
async def test_reads_normalize_results():
    def handler(request):
        rid, method, params = _rpc(request)
        result = {
            "wealth_getParticipants": ["0xABCDEF" + "0" * 34],
            "wealth_getWinners": [],
            "wealth_getWealthbyUser": "0x0" if params[0] == "0xnone" else "0x01ff",
        }[method]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "result": result})

    ledger = _ledger(handler)
    assert await ledger.get_participants() == ["0xabcdef" + "0" * 34]
    assert await ledger.get_winners() == []
    assert await ledger.get_own_handle("0xnone") is None
    assert await ledger.get_own_handle(ALICE.identity) == "0x01ff"
    await ledger.aclose()

@pytest.mark.asyncio
async def test_write_sends_transaction_and_reads_receipt():
    sent = []
    polls = []

    def handler(request):
        rid, method, params = _rpc(request)
        if method == "wealth_sendTransaction":
            sent.append(params[0])
            result = "0xfeed"
        else:
            polls.append(params[0])
            # first poll: not mined yet
            result = None if len(polls) == 1 else {"status": "0x1", "blockNumber": "0x10"}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "result": result})

    ledger = _ledger(handler)
    tx_hash = await ledger.submit(ALICE, "0xabc")
    receipt = await ledger.wait_for_receipt(tx_hash)
    assert sent == [{"from": ALICE.identity, "method": "submitWealth", "args": ["0xabc"]}]
    assert receipt.status == "success"
    assert receipt.block_number == 16
    assert polls == ["0xfeed", "0xfeed"]
    await ledger.aclose()

@pytest.mark.asyncio
async def test_rpc_error_is_a_rejection_with_reason():
    def handler(request):
        rid, _, _ = _rpc(request)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "error": {"code": 3, "message": "execution reverted: Already Amount Added"}})

    ledger = _ledger(handler)
    with pytest.raises(LedgerRejected) as exc:
        await ledger.submit(ALICE, "0xabc")
    assert "Already Amount Added" in exc.value.reason
    await ledger.aclose()

@pytest.mark.asyncio
async def test_unreachable_node_is_a_transport_error_on_reads():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    ledger = _ledger(handler)
    with pytest.raises(TransportError):
        await ledger.get_participants()
    with pytest.raises(LedgerRejected):
        await ledger.reset_all(ALICE)
    await ledger.aclose()

@pytest.mark.asyncio
async def test_declined_write_never_reaches_the_node():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    ledger = _ledger(handler)
    declining = LocalSigner.from_seed("bob")
    declining.auto_approve = False
    with pytest.raises(LedgerRejected):
        await ledger.trigger_comparison(declining)
    assert calls == []
    await ledger.aclose()

@pytest.mark.asyncio
async def test_missing_receipt_times_out():
    def handler(request):
        rid, _, _ = _rpc(request)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "result": None})

    ledger = _ledger(handler, receipt_timeout_s=0)
    with pytest.raises(TransactionFailed):
        await ledger.wait_for_receipt("0xdead")
    await ledger.aclose()

@pytest.mark.asyncio
async def test_read_errors_are_transient_not_rejections():
    def handler(request):
        rid, method, _ = _rpc(request)
        if method == "wealth_getParticipants":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "error": {"code": -32000, "message": "header not found"}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "result": "not-hex"})

    ledger = _ledger(handler)
    with pytest.raises(TransportError) as exc:
        await ledger.get_participants()
    assert "header not found" in exc.value.message
    with pytest.raises(TransportError):
        await ledger.get_own_handle(ALICE.identity)
    with pytest.raises(TransportError):
        await ledger.get_winners()
    await ledger.aclose()

@pytest.mark.asyncio
async def test_poller_survives_rpc_error_and_keeps_polling():
    replies = []

    def handler(request):
        rid, _, _ = _rpc(request)
        replies.append(rid)
        if len(replies) == 1:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "error": {"message": "header not found"}})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": rid, "result": [ALICE.identity]})

    ledger = _ledger(handler)
    reader = ParticipantsController(ledger=ledger, bus=UpdateBus(), interval_s=0.005)
    reader.start()
    for _ in range(100):
        if reader.participants:
            break
        await asyncio.sleep(0.005)

    assert reader.running
    assert len(replies) >= 2
    assert reader.participants == [ALICE.identity]
    await reader.stop()
    await ledger.aclose()

@pytest.mark.asyncio
async def test_timed_out_write_is_not_reported_as_safe_to_retry():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    ledger = _ledger(handler)
    with pytest.raises(LedgerRejected) as exc:
        await ledger.submit(ALICE, "0xabc")
    assert UNCONFIRMED_BROADCAST in exc.value.reason
    err = classify_rejection(exc.value.reason)
    assert isinstance(err, TransactionFailed)
    assert "may still have been broadcast" in err.message
    await ledger.aclose()
