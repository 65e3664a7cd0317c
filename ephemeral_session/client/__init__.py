"""Client side of the ephemeral session protocol.

Owns the ephemeral secret, encrypts credentials before they leave the
client, and talks to the Session API.
"""
from .crypto import (
    EncryptedPayload,
    PBKDF2_ITERATIONS,
    decrypt,
    decrypt_payload,
    encrypt,
    encrypt_payload,
)
from .observer import LoginObserver
from .session import EphemeralSessionClient
from .storage import SecretKeeper, SecretState, TabStorage
from .transport import HttpTransport, LocalTransport

__all__ = [
    "EncryptedPayload",
    "PBKDF2_ITERATIONS",
    "encrypt",
    "decrypt",
    "encrypt_payload",
    "decrypt_payload",
    "LoginObserver",
    "EphemeralSessionClient",
    "SecretKeeper",
    "SecretState",
    "TabStorage",
    "HttpTransport",
    "LocalTransport",
]
