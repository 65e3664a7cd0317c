"""Ephemeral Session — Client-encrypted credentials in Redis, bounded by TTL.

Security Note (Threat Model):
    The server only ever holds ciphertext under HMAC-masked keys. The key
    that decrypts it is derived from a secret that lives in the client tab
    and is never transmitted, so the server cannot recover credentials.
    Losing the tab secret or the key mask secret orphans stored sessions.
"""
from .version import __version__
from .api import SessionAPI
from .blob import SessionBlob
from .conf import SessionConfig, generate_secret
from .exceptions import (
    SessionError,
    ConfigurationError,
    ValidationError,
    StoreConnectionError,
    CryptoError,
    TransportError,
    SessionNotFound,
)
from .masking import KeyMasker, mask_alias
from .storage import SessionStore

__all__ = [
    "__version__",
    "SessionAPI",
    "SessionBlob",
    "SessionConfig",
    "generate_secret",
    "SessionError",
    "ConfigurationError",
    "ValidationError",
    "StoreConnectionError",
    "CryptoError",
    "TransportError",
    "SessionNotFound",
    "KeyMasker",
    "mask_alias",
    "SessionStore",
]
