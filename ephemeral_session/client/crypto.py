"""
Client Crypto — PBKDF2 key derivation and AES-GCM payload encryption.

    key        = PBKDF2-HMAC-SHA256(secret, salt 16B, 100_000 iterations) → 32B
    ciphertext = AES-256-GCM(key, nonce 12B, orjson(payload)) → payload + tag 16B

Every ``encrypt`` draws a fresh salt and nonce. All three outputs are
standard base64 strings. ``decrypt`` either returns the authenticated
payload or raises CryptoError; no partial plaintext is ever returned.

The async wrappers run derivation and cipher work in the default executor
so the event loop stays responsive.

Security Note:
    Never log the secret, the derived key, or decrypted payloads.
"""
import os
import base64
import asyncio
import binascii
import functools
import logging
from dataclasses import asdict, dataclass
from typing import Any

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import CryptoError

logger = logging.getLogger("ephemeral_session.client")

PBKDF2_ITERATIONS = 100_000
SALT_SIZE = 16
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # 128-bit GCM tag
KEY_LENGTH = 32  # AES-256


@dataclass(frozen=True)
class EncryptedPayload:
    """Transport-safe encryption output."""
    ciphertext: str
    iv: str
    salt: str

    def as_dict(self) -> dict:
        return asdict(self)


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(name: str, value: Any) -> bytes:
    if not isinstance(value, str):
        raise CryptoError(f"Missing {name}")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as err:
        raise CryptoError(f"Malformed {name}") from err


def derive_key(secret: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """Derive a 32-byte AES key from the ephemeral secret and salt."""
    if not secret:
        raise CryptoError("Ephemeral secret is empty")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret.encode("utf-8"))


def encrypt_payload(
    secret: str,
    payload: Any,
    iterations: int = PBKDF2_ITERATIONS,
) -> EncryptedPayload:
    """Encrypt a JSON-serializable payload under ``secret``.

    Raises:
        CryptoError: If the secret is empty or the payload is not serializable.
    """
    try:
        plaintext = orjson.dumps(payload)
    except orjson.JSONEncodeError as err:
        raise CryptoError(f"Failed to encrypt payload: {err}") from err
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    key = derive_key(secret, salt, iterations)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
    return EncryptedPayload(
        ciphertext=_b64encode(ciphertext),
        iv=_b64encode(nonce),
        salt=_b64encode(salt),
    )


def decrypt_payload(
    secret: str,
    ciphertext: str,
    iv: str,
    salt: str,
    iterations: int = PBKDF2_ITERATIONS,
) -> Any:
    """Decrypt and verify a payload produced by :func:`encrypt_payload`.

    Raises:
        CryptoError: Wrong secret, tampered/corrupted data, wrong salt or iv,
            or a malformed envelope.
    """
    ct = _b64decode("ciphertext", ciphertext)
    nonce = _b64decode("iv", iv)
    salt_bytes = _b64decode("salt", salt)
    if len(nonce) != NONCE_SIZE:
        raise CryptoError(f"iv must be {NONCE_SIZE} bytes, got {len(nonce)}")
    if len(ct) < TAG_SIZE:
        raise CryptoError(
            f"ciphertext too short: {len(ct)} bytes (minimum {TAG_SIZE})"
        )
    key = derive_key(secret, salt_bytes, iterations)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise CryptoError("Failed to decrypt payload: authentication failed") from err
    try:
        return orjson.loads(plaintext)
    except orjson.JSONDecodeError as err:
        raise CryptoError("Decrypted payload is not valid JSON") from err


async def encrypt(
    secret: str,
    payload: Any,
    iterations: int = PBKDF2_ITERATIONS,
) -> EncryptedPayload:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, functools.partial(encrypt_payload, secret, payload, iterations),
    )


async def decrypt(
    secret: str,
    ciphertext: str,
    iv: str,
    salt: str,
    iterations: int = PBKDF2_ITERATIONS,
) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        functools.partial(decrypt_payload, secret, ciphertext, iv, salt, iterations),
    )
