from __future__ import annotations
from typing import Awaitable, Callable, Protocol
import httpx
import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from privwealth.errors import EncryptionFailure, NotAuthorized, RevealFailure
from privwealth.services.confidential import LocalConfidentialService
from privwealth.services.signer import Signer
from privwealth.security import open_sealed

log = structlog.get_logger()


class EncryptionGateway(Protocol):
    destination: str

    async def encrypt(self, amount: int, owner: str, destination: str) -> str:
        """Turn a plaintext amount into a handle bound to (owner, destination, chain)."""

    async def reveal(self, handle: str, signer: Signer) -> int:
        """Return the plaintext behind `handle` to its owner only."""


async def _reveal(
    handle: str,
    signer: Signer,
    *,
    chain_id: int,
    destination: str,
    reencrypt: Callable[[str, str], Awaitable[dict[str, str]]],
) -> int:
    # Fresh ephemeral key and fresh signature for every reveal.
    ephemeral = X25519PrivateKey.generate()
    epk = ephemeral.public_key().public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
    authorization = await signer.sign_reveal(
        handle=handle, ephemeral_public_key=epk, chain_id=chain_id, destination=destination
    )
    sealed = await reencrypt(handle, authorization)
    try:
        return open_sealed(ephemeral, sealed)
    except (InvalidTag, KeyError, ValueError) as e:
        raise RevealFailure("Could not open the re-encrypted value.") from e


class LocalEncryptionGateway:
    """Gateway talking to an in-process LocalConfidentialService."""

    def __init__(self, service: LocalConfidentialService, destination: str):
        self.service = service
        self.destination = destination

    async def encrypt(self, amount: int, owner: str, destination: str) -> str:
        try:
            return self.service.encrypt(amount, owner, destination)
        except ValueError as e:
            raise EncryptionFailure() from e

    async def reveal(self, handle: str, signer: Signer) -> int:
        async def reencrypt(h: str, authorization: str) -> dict[str, str]:
            return self.service.reencrypt(h, authorization, self.destination)

        return await _reveal(
            handle, signer,
            chain_id=self.service.chain_id,
            destination=self.destination,
            reencrypt=reencrypt,
        )


class HttpEncryptionGateway:
    """Gateway for a remote confidential-computation service speaking JSON over HTTP."""

    def __init__(self, base_url: str, *, chain_id: int, destination: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self.chain_id = chain_id
        self.destination = destination
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def encrypt(self, amount: int, owner: str, destination: str) -> str:
        body = {
            "value": str(amount),
            "accountAddress": owner,
            "dappAddress": destination,
            "chainId": self.chain_id,
        }
        try:
            r = await self._client.post("/v1/encrypt", json=body)
            r.raise_for_status()
            return r.json()["handle"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            log.warning("gateway.encrypt_failed", error=str(e))
            raise EncryptionFailure() from e

    async def _reencrypt(self, handle: str, authorization: str) -> dict[str, str]:
        try:
            r = await self._client.post(
                "/v1/reencrypt",
                json={"handle": handle, "authorization": authorization, "dappAddress": self.destination},
            )
        except httpx.HTTPError as e:
            raise RevealFailure() from e
        if r.status_code in (401, 403):
            raise NotAuthorized()
        if r.status_code >= 400:
            raise RevealFailure(f"Reveal service returned {r.status_code}.")
        try:
            return r.json()
        except ValueError as e:
            raise RevealFailure() from e

    async def reveal(self, handle: str, signer: Signer) -> int:
        return await _reveal(
            handle, signer,
            chain_id=self.chain_id,
            destination=self.destination,
            reencrypt=self._reencrypt,
        )
