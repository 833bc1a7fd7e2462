from __future__ import annotations
import hashlib
import os
from typing import Iterable
import jwt
import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from privwealth.errors import NotAuthorized, RevealFailure
from privwealth.schemas.ledger import SubmissionRecord
from privwealth.security import b64d, decode_reveal_authorization, seal_value

log = structlog.get_logger()

HANDLE_VERSION = 1
MAX_VALUE = 2**256  # euint256
_NONCE_LEN = 12


class LocalConfidentialService:
    """
    In-process stand-in for the confidential-computation network.

    A handle is the serialized ciphertext itself: version byte, nonce and
    AES-GCM ciphertext whose associated data binds (chain, owner, destination).
    Opening it with any other binding fails the tag check.
    """

    def __init__(self, network_key: str, chain_id: int):
        self.chain_id = chain_id
        self._aead = AESGCM(hashlib.sha256(f"network:{network_key}".encode()).digest())
        self._used_authorizations: set[str] = set()

    def _aad(self, owner: str, destination: str) -> bytes:
        return f"{self.chain_id}|{owner.lower()}|{destination.lower()}".encode()

    def encrypt(self, amount: int, owner: str, destination: str) -> str:
        if not isinstance(amount, int) or amount < 0 or amount >= MAX_VALUE:
            raise ValueError("amount must be a non-negative 256-bit integer")
        nonce = os.urandom(_NONCE_LEN)
        ct = self._aead.encrypt(nonce, amount.to_bytes(32, "big"), self._aad(owner, destination))
        return "0x" + (bytes([HANDLE_VERSION]) + nonce + ct).hex()

    def _open(self, handle: str, owner: str, destination: str) -> int:
        raw = bytes.fromhex(handle[2:] if handle.startswith("0x") else handle)
        if len(raw) <= 1 + _NONCE_LEN or raw[0] != HANDLE_VERSION:
            raise ValueError("malformed handle")
        nonce, ct = raw[1:1 + _NONCE_LEN], raw[1 + _NONCE_LEN:]
        return int.from_bytes(self._aead.decrypt(nonce, ct, self._aad(owner, destination)), "big")

    def value_for_compute(self, record: SubmissionRecord, destination: str) -> int:
        # A handle that does not open is treated as zero, never rejected.
        try:
            return self._open(record.handle, record.owner, destination)
        except (ValueError, InvalidTag):
            log.warning("confidential.malformed_handle", owner=record.owner)
            return 0

    def richest(self, records: Iterable[SubmissionRecord], destination: str) -> list[str]:
        """Owners holding the maximum value, in submission order."""
        best: int | None = None
        winners: list[str] = []
        for rec in records:
            v = self.value_for_compute(rec, destination)
            if best is None or v > best:
                best, winners = v, [rec.owner]
            elif v == best:
                winners.append(rec.owner)
        return winners

    def reencrypt(self, handle: str, authorization: str, destination: str) -> dict[str, str]:
        """Return the plaintext of `handle` sealed to the ephemeral key named in the authorization."""
        try:
            claims = decode_reveal_authorization(authorization)
        except jwt.InvalidTokenError as e:
            raise NotAuthorized(f"Invalid reveal authorization: {e}") from e

        if claims.get("handle") != handle:
            raise NotAuthorized("Authorization was issued for a different handle.")
        if claims.get("chain_id") != self.chain_id or claims.get("dapp") != destination.lower():
            raise NotAuthorized("Authorization was issued for a different context.")
        jti = claims["jti"]
        if jti in self._used_authorizations:
            raise NotAuthorized("Authorization has already been used.")
        self._used_authorizations.add(jti)

        try:
            value = self._open(handle, claims["sub"], destination)
        except InvalidTag:
            raise NotAuthorized()
        except ValueError as e:
            raise RevealFailure("Handle is malformed.") from e
        return seal_value(b64d(claims["epk"]), value)
