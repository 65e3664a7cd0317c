"""
Key Masking — Deterministic, one-way storage keys derived from user aliases.

    StorageKey = "<namespace>:v1:session:" + hex(HMAC-SHA256(normalize(alias), secret))

The alias is normalized (trimmed, lower-cased) so that
``" User@Example.com"`` and ``"user@example.com"`` map to the same key.
Without the server secret the key cannot be linked back to an alias.

Security Note:
    Masking fails closed. A missing or malformed secret raises
    ConfigurationError; no weaker or empty key is ever substituted.
    Never log the secret.
"""
import base64
import binascii
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes, hmac

from .exceptions import ConfigurationError, ValidationError

KEY_VERSION = "v1"
SECRET_LENGTH = 32
DEFAULT_NAMESPACE = "ephemeral"


def decode_mask_secret(value: Optional[str]) -> bytes:
    """Decode a base64 key-mask secret.

    Args:
        value: Base64-encoded secret (must decode to exactly 32 bytes).

    Returns:
        Raw secret bytes.

    Raises:
        ConfigurationError: If the secret is unset, not base64, or has the
            wrong length.
    """
    if not value or not value.strip():
        raise ConfigurationError("key_mask_secret is not configured")
    try:
        raw = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError) as err:
        raise ConfigurationError("Invalid key_mask_secret format") from err
    if len(raw) != SECRET_LENGTH:
        raise ConfigurationError(
            f"key_mask_secret must decode to exactly {SECRET_LENGTH} bytes, "
            f"got {len(raw)}"
        )
    return raw


def normalize_alias(alias: str) -> str:
    """Trim and lower-case an alias.

    Raises:
        ValidationError: If the alias is empty after trimming.
    """
    if not isinstance(alias, str):
        raise ValidationError("alias must be a string")
    normalized = alias.strip().lower()
    if not normalized:
        raise ValidationError("alias cannot be empty")
    return normalized


def mask_alias(
    alias: str,
    secret: Union[str, bytes, None],
    namespace: str = DEFAULT_NAMESPACE,
) -> str:
    """Derive the storage key for an alias.

    Args:
        alias: User-facing identifier (e.g. an email address).
        secret: Base64 secret string, or already-decoded 32 raw bytes.
        namespace: Key namespace prefix.

    Returns:
        ``"<namespace>:v1:session:<64 hex chars>"``.
    """
    key = secret if isinstance(secret, bytes) else decode_mask_secret(secret)
    if len(key) != SECRET_LENGTH:
        raise ConfigurationError(
            f"key_mask_secret must be exactly {SECRET_LENGTH} bytes"
        )
    normalized = normalize_alias(alias)
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(normalized.encode("utf-8"))
    return f"{namespace}:{KEY_VERSION}:session:{mac.finalize().hex()}"


class KeyMasker:
    """Masks aliases with the configured server secret.

    The secret is decoded on every call, so a masker built without a
    secret can exist (the subsystem reports itself disabled) but never
    produces a key.
    """

    def __init__(self, secret: Optional[str], namespace: str = DEFAULT_NAMESPACE):
        self._secret = secret
        self.namespace = namespace

    @classmethod
    def from_config(cls, config) -> "KeyMasker":
        secret = config.key_mask_secret
        return cls(
            secret.get_secret_value() if secret is not None else None,
            namespace=config.namespace,
        )

    def validate(self) -> None:
        """Raise ConfigurationError unless a usable secret is configured."""
        decode_mask_secret(self._secret)

    @property
    def configured(self) -> bool:
        try:
            self.validate()
        except ConfigurationError:
            return False
        return True

    def mask(self, alias: str) -> str:
        return mask_alias(alias, decode_mask_secret(self._secret), self.namespace)

    def __repr__(self) -> str:
        return f"<KeyMasker namespace={self.namespace!r} configured={self.configured}>"
