from __future__ import annotations
import base64
import hashlib
import os
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from privwealth.config import settings

AUTH_ALG = "EdDSA"
AUTH_TYPE = "reveal"
_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

def b64e(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")

def b64d(s: str) -> bytes:
    return base64.urlsafe_b64decode(s.encode("ascii"))

def normalize_identity(value: str) -> str:
    """Accounts compare case-insensitively; keep one canonical lowercase form."""
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise ValueError(f"not an account address: {value!r}")
    return value.lower()

def raw_public_key(key: Ed25519PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)

def address_from_public_key(raw: bytes) -> str:
    return "0x" + hashlib.sha256(raw).hexdigest()[-40:]

def make_reveal_authorization(
    private_key: Ed25519PrivateKey,
    *,
    identity: str,
    handle: str,
    ephemeral_public_key: bytes,
    chain_id: int,
    destination: str,
    ttl_s: int | None = None,
) -> str:
    """
    Sign a single-use proof that `identity` asks to see `handle`,
    re-encrypted to `ephemeral_public_key` only.
    """
    now = datetime.now(timezone.utc)
    ttl = settings.reveal_auth_ttl_s if ttl_s is None else ttl_s
    payload = {
        "sub": identity,
        "type": AUTH_TYPE,
        "handle": handle,
        "epk": b64e(ephemeral_public_key),
        "chain_id": chain_id,
        "dapp": destination.lower(),
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl)).timestamp()),
    }
    headers = {"pub": b64e(raw_public_key(private_key.public_key()))}
    return jwt.encode(payload, private_key, algorithm=AUTH_ALG, headers=headers)

def decode_reveal_authorization(token: str) -> dict[str, Any]:
    """
    Verify the signature against the key carried in the header and check that
    the key derives the claimed identity. Raises jwt.InvalidTokenError.
    """
    header = jwt.get_unverified_header(token)
    pub_raw = b64d(header.get("pub", ""))
    try:
        public_key = Ed25519PublicKey.from_public_bytes(pub_raw)
    except ValueError as e:
        raise jwt.InvalidTokenError("bad signer key") from e
    data = jwt.decode(token, public_key, algorithms=[AUTH_ALG])
    if data.get("type") != AUTH_TYPE:
        raise jwt.InvalidTokenError("wrong token type")
    if address_from_public_key(pub_raw) != data.get("sub"):
        raise jwt.InvalidTokenError("signer does not match subject")
    return data

# ---------- reencryption to an ephemeral key ----------

_SEAL_INFO = b"privwealth-reveal-v1"

def _seal_key(shared: bytes) -> AESGCM:
    key = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=_SEAL_INFO).derive(shared)
    return AESGCM(key)

def seal_value(recipient_public_key: bytes, value: int) -> dict[str, str]:
    """Encrypt `value` so that only the holder of the matching X25519 key can read it."""
    sender = X25519PrivateKey.generate()
    shared = sender.exchange(X25519PublicKey.from_public_bytes(recipient_public_key))
    nonce = os.urandom(12)
    ct = _seal_key(shared).encrypt(nonce, value.to_bytes(32, "big"), None)
    sender_pub = sender.public_key().public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)
    return {"epk": b64e(sender_pub), "nonce": b64e(nonce), "ciphertext": b64e(ct)}

def open_sealed(recipient: X25519PrivateKey, sealed: dict[str, str]) -> int:
    shared = recipient.exchange(X25519PublicKey.from_public_bytes(b64d(sealed["epk"])))
    pt = _seal_key(shared).decrypt(b64d(sealed["nonce"]), b64d(sealed["ciphertext"]), None)
    return int.from_bytes(pt, "big")
