"""
Session Configuration — Validated, immutable process-wide settings.

Reads settings from environment variables:
    EPHEMERAL_SESSION_HOST = <redis host>
    EPHEMERAL_SESSION_PORT = <redis port>
    EPHEMERAL_SESSION_USE_TLS = <true|false>
    EPHEMERAL_SESSION_PASSWORD = <redis password, optional>
    EPHEMERAL_SESSION_TTL_SECONDS = <integer, default 14400>
    EPHEMERAL_SESSION_KEY_MASK_SECRET = <base64-encoded 32-byte key>
    EPHEMERAL_SESSION_NAMESPACE = <key namespace, default "ephemeral">
    EPHEMERAL_SESSION_SOCKET_TIMEOUT = <seconds, default 5.0>

Security Note:
    Never log the store password or the key mask secret.
"""
import os
import base64
import secrets
import logging
from typing import Optional

import pydantic
from pydantic import BaseModel, Field, SecretStr, field_validator

from .exceptions import ConfigurationError
from .masking import DEFAULT_NAMESPACE, SECRET_LENGTH, decode_mask_secret

logger = logging.getLogger("ephemeral_session")

ENV_PREFIX = "EPHEMERAL_SESSION_"
DEFAULT_TTL = 14400

_ENV_FIELDS = {
    "HOST": "host",
    "PORT": "port",
    "USE_TLS": "use_tls",
    "PASSWORD": "store_password",
    "TTL_SECONDS": "ttl_seconds",
    "KEY_MASK_SECRET": "key_mask_secret",
    "NAMESPACE": "namespace",
    "SOCKET_TIMEOUT": "socket_timeout",
}


def generate_secret() -> str:
    """Generate a random 32-byte key mask secret and return it as base64.

    This is a utility for operators; rotating the secret orphans every
    stored session.
    """
    return base64.b64encode(secrets.token_bytes(SECRET_LENGTH)).decode("ascii")


class SessionConfig(BaseModel):
    """Validated session storage configuration."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=6379, ge=1, le=65535)
    use_tls: bool = False
    store_password: Optional[SecretStr] = None
    ttl_seconds: int = Field(default=DEFAULT_TTL, ge=1)
    key_mask_secret: Optional[SecretStr] = None
    namespace: str = Field(default=DEFAULT_NAMESPACE, min_length=1)
    socket_timeout: float = Field(default=5.0, gt=0)

    model_config = {"frozen": True}

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Host must be non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("host cannot be empty")
        return v

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        if ":" in v:
            raise ValueError("namespace cannot contain ':'")
        return v

    @field_validator("store_password", "key_mask_secret", mode="before")
    @classmethod
    def empty_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("key_mask_secret")
    @classmethod
    def validate_key_mask_secret(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        """A configured secret must be base64 for exactly 32 bytes."""
        if v is not None:
            try:
                decode_mask_secret(v.get_secret_value())
            except ConfigurationError as err:
                raise ValueError(str(err)) from err
        return v

    @property
    def enabled(self) -> bool:
        """Whether key masking (and thus the whole subsystem) can run."""
        return self.key_mask_secret is not None

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "SessionConfig":
        """Create SessionConfig by loading values from environment.

        Raises:
            ConfigurationError: If any provided value is malformed.
        """
        environ = os.environ if environ is None else environ
        values = {
            field: environ[ENV_PREFIX + name]
            for name, field in _ENV_FIELDS.items()
            if ENV_PREFIX + name in environ
        }
        try:
            config = cls(**values)
        except pydantic.ValidationError as err:
            fields = sorted({str(e["loc"][0]) for e in err.errors() if e["loc"]})
            raise ConfigurationError(
                f"Invalid session configuration for: {', '.join(fields)}"
            ) from err
        logger.debug(
            "Loaded session config: host=%s port=%s tls=%s ttl=%s namespace=%s",
            config.host, config.port, config.use_tls,
            config.ttl_seconds, config.namespace,
        )
        return config
