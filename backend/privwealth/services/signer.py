from __future__ import annotations
import hashlib
from typing import Protocol
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from privwealth.errors import LedgerRejected, SignerRejected
from privwealth.security import address_from_public_key, make_reveal_authorization, raw_public_key


class Signer(Protocol):
    identity: str

    async def authorize_transaction(self, action: str) -> None:
        """Ask the account holder to approve a ledger write. Raises LedgerRejected if declined."""

    async def sign_reveal(self, *, handle: str, ephemeral_public_key: bytes, chain_id: int, destination: str) -> str:
        """Return a single-use reveal authorization. Raises SignerRejected if declined."""


class LocalSigner:
    """Development signer backed by an in-memory Ed25519 key."""

    def __init__(self, private_key: Ed25519PrivateKey, *, label: str | None = None, auto_approve: bool = True):
        self._key = private_key
        self.identity = address_from_public_key(raw_public_key(private_key.public_key()))
        self.label = label
        self.auto_approve = auto_approve

    @classmethod
    def from_seed(cls, seed: str, **kw) -> "LocalSigner":
        key = Ed25519PrivateKey.from_private_bytes(hashlib.sha256(f"account:{seed}".encode()).digest())
        return cls(key, label=seed, **kw)

    async def authorize_transaction(self, action: str) -> None:
        if not self.auto_approve:
            # same wording wallets use so classification treats both alike
            raise LedgerRejected(f"User rejected the request. ({action})")

    async def sign_reveal(self, *, handle: str, ephemeral_public_key: bytes, chain_id: int, destination: str) -> str:
        if not self.auto_approve:
            raise SignerRejected("Signature request was rejected.")
        return make_reveal_authorization(
            self._key,
            identity=self.identity,
            handle=handle,
            ephemeral_public_key=ephemeral_public_key,
            chain_id=chain_id,
            destination=destination,
        )

    def __repr__(self) -> str:
        return f"LocalSigner({self.label or ''}:{self.identity})"


class LocalKeyring:
    """The set of development accounts a user can switch between."""

    def __init__(self, signers: list[LocalSigner]):
        self._by_identity = {s.identity: s for s in signers}

    @classmethod
    def from_seeds(cls, seeds: list[str]) -> "LocalKeyring":
        return cls([LocalSigner.from_seed(s.strip()) for s in seeds if s.strip()])

    @property
    def identities(self) -> list[str]:
        return list(self._by_identity)

    def get(self, identity: str) -> LocalSigner | None:
        return self._by_identity.get(identity.lower())

    def __iter__(self):
        return iter(self._by_identity.values())
