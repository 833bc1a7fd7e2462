from __future__ import annotations
import asyncio
import itertools
import uuid
from typing import Any, Callable, Protocol
import httpx
import structlog
from privwealth.errors import UNCONFIRMED_BROADCAST, LedgerRejected, TransactionFailed, TransportError
from privwealth.schemas.ledger import SubmissionRecord, TxReceipt
from privwealth.services.confidential import LocalConfidentialService
from privwealth.services.signer import Signer

log = structlog.get_logger()

ALREADY_SUBMITTED_REASON = "execution reverted: Already Amount Added"


class Ledger(Protocol):
    # ---------- reads (no side effects) ----------
    async def get_own_handle(self, identity: str) -> str | None: ...
    async def get_participants(self) -> list[str]: ...
    async def get_winners(self) -> list[str]: ...

    # ---------- writes: return a tx hash once broadcast, or raise LedgerRejected ----------
    async def submit(self, signer: Signer, handle: str) -> str: ...
    async def trigger_comparison(self, signer: Signer) -> str: ...
    async def reset_all(self, signer: Signer) -> str: ...

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        """Block until the transaction is confirmed (successfully or not)."""


def _new_tx_hash() -> str:
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex


def _addresses(result: Any) -> list[str]:
    if result is None:
        return []
    if not isinstance(result, list):
        raise TypeError(f"expected a list of addresses, got {type(result).__name__}")
    return [str(a).lower() for a in result]


class InMemoryLedger:
    """
    Development chain holding the wealth contract state.

    Writes are simulated first (reverts surface as LedgerRejected before a hash
    exists), then mined one block later. A comparison request only records the
    intent; its winners land `comparison_blocks` blocks after confirmation, and
    a reset in between discards them.
    """

    def __init__(
        self,
        service: LocalConfidentialService,
        *,
        destination: str,
        block_time_s: float = 0.0,
        comparison_blocks: int = 0,
    ):
        self.service = service
        self.destination = destination
        self.block_time_s = block_time_s
        self.comparison_blocks = comparison_blocks
        self.block_number = 0
        self._records: dict[str, str] = {}  # owner -> handle, insertion = submission order
        self._winners: list[str] = []
        self._generation = 0
        self._receipts: dict[str, asyncio.Future[TxReceipt]] = {}
        self._tasks: set[asyncio.Task] = set()

    # ---------- reads ----------

    async def get_own_handle(self, identity: str) -> str | None:
        return self._records.get(identity.lower())

    async def get_participants(self) -> list[str]:
        return list(self._records)

    async def get_winners(self) -> list[str]:
        return list(self._winners)

    # ---------- writes ----------

    async def submit(self, signer: Signer, handle: str) -> str:
        owner = signer.identity.lower()
        await signer.authorize_transaction("submitWealth")
        if owner in self._records:
            raise LedgerRejected(ALREADY_SUBMITTED_REASON)

        def apply() -> str | None:
            if owner in self._records:
                return ALREADY_SUBMITTED_REASON
            self._records[owner] = handle
            return None

        return self._broadcast("submitWealth", apply)

    async def trigger_comparison(self, signer: Signer) -> str:
        await signer.authorize_transaction("richest")

        def apply() -> None:
            records = [SubmissionRecord(owner=o, handle=h) for o, h in self._records.items()]
            self._spawn(self._compare(records, self._generation))

        return self._broadcast("richest", apply)

    async def reset_all(self, signer: Signer) -> str:
        await signer.authorize_transaction("resetArrays")

        def apply() -> None:
            self._records.clear()
            self._winners = []
            self._generation += 1

        return self._broadcast("resetArrays", apply)

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        fut = self._receipts.get(tx_hash)
        if fut is None:
            raise TransactionFailed(f"Unknown transaction {tx_hash}.")
        return await asyncio.shield(fut)

    # ---------- internals ----------

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _broadcast(self, method: str, apply: Callable[[], str | None]) -> str:
        tx_hash = _new_tx_hash()
        self._receipts[tx_hash] = asyncio.get_running_loop().create_future()
        self._spawn(self._mine(tx_hash, method, apply))
        log.info("ledger.broadcast", method=method, tx_hash=tx_hash)
        return tx_hash

    async def _mine(self, tx_hash: str, method: str, apply: Callable[[], str | None]) -> None:
        await asyncio.sleep(self.block_time_s)
        self.block_number += 1
        reason = apply()
        receipt = TxReceipt(
            tx_hash=tx_hash,
            status="failure" if reason else "success",
            block_number=self.block_number,
            reason=reason,
        )
        self._receipts[tx_hash].set_result(receipt)
        log.info("ledger.mined", method=method, tx_hash=tx_hash, status=receipt.status, block=receipt.block_number)

    async def _compare(self, records: list[SubmissionRecord], generation: int) -> None:
        # at least one yield, so confirmation always precedes the result
        for _ in range(max(1, self.comparison_blocks)):
            await asyncio.sleep(self.block_time_s)
        if generation != self._generation:
            log.info("ledger.comparison_discarded", generation=generation)
            return
        self._winners = self.service.richest(records, self.destination)
        log.info("ledger.comparison_done", winners=len(self._winners))

    async def drain(self) -> None:
        """Wait until every mined transaction and pending comparison has landed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


class RpcLedger:
    """Wealth contract reached through a JSON-RPC 2.0 endpoint."""

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        receipt_poll_s: float = 1.0,
        receipt_timeout_s: float = 120.0,
    ):
        self.url = url
        self.receipt_poll_s = receipt_poll_s
        self.receipt_timeout_s = receipt_timeout_s
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = await self._client.post(self.url, json=payload)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(f"{method}: {e}") from e
        if not isinstance(data, dict):
            raise TransportError(f"{method}: malformed response")
        error = data.get("error")
        if error:
            raise LedgerRejected(str(error.get("message", "")) if isinstance(error, dict) else str(error))
        return data.get("result")

    async def _read(self, method: str, params: list[Any], parse: Callable[[Any], Any]) -> Any:
        # every read failure is transient to the caller; pollers retry on the next tick
        try:
            return parse(await self._call(method, params))
        except LedgerRejected as e:
            raise TransportError(f"{method}: {e.reason}") from e
        except (TypeError, ValueError, AttributeError) as e:
            raise TransportError(f"{method}: unexpected result ({e})") from e

    async def get_own_handle(self, identity: str) -> str | None:
        def parse(result: Any) -> str | None:
            # the contract answers 0 for accounts without a record
            if not result or int(str(result), 0) == 0:
                return None
            return str(result)

        return await self._read("wealth_getWealthbyUser", [identity], parse)

    async def get_participants(self) -> list[str]:
        return await self._read("wealth_getParticipants", [], _addresses)

    async def get_winners(self) -> list[str]:
        return await self._read("wealth_getWinners", [], _addresses)

    async def _send(self, signer: Signer, method: str, args: list[Any]) -> str:
        await signer.authorize_transaction(method)
        try:
            return str(await self._call("wealth_sendTransaction", [{"from": signer.identity, "method": method, "args": args}]))
        except TransportError as e:
            # a timeout can arrive after the node accepted the transaction
            raise LedgerRejected(f"{e.message} ({UNCONFIRMED_BROADCAST})") from e

    async def submit(self, signer: Signer, handle: str) -> str:
        return await self._send(signer, "submitWealth", [handle])

    async def trigger_comparison(self, signer: Signer) -> str:
        return await self._send(signer, "richest", [])

    async def reset_all(self, signer: Signer) -> str:
        return await self._send(signer, "resetArrays", [])

    async def wait_for_receipt(self, tx_hash: str) -> TxReceipt:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.receipt_timeout_s
        while True:
            try:
                raw = await self._read("wealth_getTransactionReceipt", [tx_hash], lambda r: r)
            except TransportError as e:
                log.warning("ledger.receipt_poll_failed", tx_hash=tx_hash, error=str(e))
                raw = None
            if raw:
                return TxReceipt(
                    tx_hash=tx_hash,
                    status="success" if raw.get("status") in ("success", "0x1", 1) else "failure",
                    block_number=int(str(raw.get("blockNumber", 0)), 0),
                    reason=raw.get("reason"),
                )
            if loop.time() >= deadline:
                raise TransactionFailed(f"No receipt for {tx_hash} after {self.receipt_timeout_s:.0f}s.")
            await asyncio.sleep(self.receipt_poll_s)
