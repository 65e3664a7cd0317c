"""SessionBlob — the opaque encrypted envelope stored per masked key.

The server never interprets ``ciphertext``, ``iv``, ``salt`` or ``meta``;
it only attaches timestamps and round-trips the envelope as JSON.
"""
import time
from typing import Any, Optional

import orjson
from pydantic import BaseModel, Field


class SessionBlob(BaseModel):
    """Encrypted credential envelope."""

    ciphertext: str
    iv: str
    salt: str
    meta: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=lambda: int(time.time()))
    server_timestamp: Optional[int] = None

    @classmethod
    def build(
        cls,
        ciphertext: str,
        iv: str,
        salt: str,
        meta: Any = None,
    ) -> "SessionBlob":
        """Build a fresh blob with a server-side creation timestamp.

        ``meta`` is caller-supplied; anything that is not a mapping is
        replaced with an empty dict.
        """
        return cls(
            ciphertext=ciphertext,
            iv=iv,
            salt=salt,
            meta=dict(meta) if isinstance(meta, dict) else {},
        )

    def stamped(self) -> "SessionBlob":
        """Return a copy carrying the write-time server timestamp."""
        return self.model_copy(update={"server_timestamp": int(time.time())})

    def encode(self) -> bytes:
        return orjson.dumps(self.model_dump())


def decode_blob(data: Any) -> Optional[dict]:
    """Decode a stored blob verbatim.

    Returns:
        The stored mapping, or None when the value is absent or is not a
        JSON object.
    """
    if data is None:
        return None
    try:
        decoded = orjson.loads(data)
    except orjson.JSONDecodeError:
        return None
    return decoded if isinstance(decoded, dict) else None
