"""
Session API — Stateless RPC operations over masked, TTL-bound blobs.

Operations (RPC name → method):
- ``Create``          → ``create(alias, ciphertext, iv, salt, meta)``
- ``Get``             → ``get(alias)``
- ``Delete``          → ``delete(alias)``
- ``Refresh``         → ``refresh(alias)``
- ``Status``          → ``status(alias)``
- ``TestConnection``  → ``test_connection()``

Every operation returns a response dict carrying ``success``; no fault ever
propagates to the caller, so a storage problem cannot block a login.
"Never stored" and "store unreachable" both read as not-found.

Security Note:
    Never log ciphertext, iv, salt or secret material. Aliases and
    operation names may be logged.
"""
import logging
from typing import Any, Awaitable, Callable, Optional

from .blob import SessionBlob, decode_blob
from .exceptions import ConfigurationError, ValidationError
from .masking import KeyMasker
from .storage import SessionStore

logger = logging.getLogger("ephemeral_session.api")

NOT_FOUND = "Session not found or expired"
NOT_CONFIGURED = "Session storage is not configured"

_ACTION_PARAMS = {
    "Create": ("alias", "ciphertext", "iv", "salt", "meta"),
    "Get": ("alias",),
    "Delete": ("alias",),
    "Refresh": ("alias",),
    "Status": ("alias",),
    "TestConnection": (),
}


def _failure(error: str, **extra: Any) -> dict:
    return {"success": False, "error": error, **extra}


def _require(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required parameter: {name}")
    return value


class SessionAPI:
    """Session RPC handlers.

    Args:
        config: SessionConfig (ttl, namespace, masking secret).
        store: SessionStore used for every read and write.
        masker: Optional KeyMasker; built from config when omitted.
    """

    def __init__(
        self,
        config: Any,
        store: SessionStore,
        masker: Optional[KeyMasker] = None,
    ):
        self._config = config
        self._store = store
        self._masker = masker or KeyMasker.from_config(config)
        self._actions: dict[str, Callable[..., Awaitable[dict]]] = {
            "Create": self.create,
            "Get": self.get,
            "Delete": self.delete,
            "Refresh": self.refresh,
            "Status": self.status,
            "TestConnection": self.test_connection,
        }

    @property
    def ttl(self) -> int:
        return self._config.ttl_seconds

    @property
    def actions(self) -> list[str]:
        return list(self._actions)

    async def _key_for(self, alias: Any) -> str:
        """Validate and mask an alias; reconnect after a prior store failure."""
        alias = _require("alias", alias)
        key = self._masker.mask(alias)
        if self._store.needs_reconnect:
            await self._store.reset()
        return key

    async def _guard(
        self,
        operation: str,
        alias: Any,
        handler: Callable[[], Awaitable[dict]],
        **failure_extra: Any,
    ) -> dict:
        """Run ``handler`` converting every fault into a failure response."""
        try:
            return await handler()
        except ValidationError as err:
            logger.debug("Session %s rejected: %s", operation, err)
            return _failure(str(err), **failure_extra)
        except ConfigurationError as err:
            logger.error("Session %s unavailable for alias=%s: %s", operation, alias, err)
            return _failure(NOT_CONFIGURED, **failure_extra)
        except Exception as err:
            logger.error("Session %s error for alias=%s: %s", operation, alias, err)
            return _failure(f"Session {operation} failed", **failure_extra)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(
        self,
        alias: Any = None,
        ciphertext: Any = None,
        iv: Any = None,
        salt: Any = None,
        meta: Any = None,
    ) -> dict:
        """Store an encrypted blob for ``alias`` with the configured TTL."""
        async def handler() -> dict:
            _require("alias", alias)
            blob = SessionBlob.build(
                ciphertext=_require("ciphertext", ciphertext),
                iv=_require("iv", iv),
                salt=_require("salt", salt),
                meta=meta,
            )
            key = await self._key_for(alias)
            stored = await self._store.set_with_ttl(
                key, blob.stamped().encode(), self.ttl,
            )
            if not stored:
                return _failure("Failed to store session")
            logger.debug("Session stored for alias=%s ttl=%s", alias, self.ttl)
            return {"success": True, "ttl": self.ttl}

        return await self._guard("create", alias, handler)

    async def get(self, alias: Any = None) -> dict:
        """Return the stored blob for ``alias`` verbatim."""
        async def handler() -> dict:
            key = await self._key_for(alias)
            session = decode_blob(await self._store.get(key))
            if session is None:
                return _failure(NOT_FOUND)
            return {"success": True, "session": session}

        return await self._guard("get", alias, handler)

    async def delete(self, alias: Any = None) -> dict:
        async def handler() -> dict:
            key = await self._key_for(alias)
            removed = await self._store.delete(key)
            logger.debug("Session delete for alias=%s removed=%s", alias, removed)
            return {"success": removed}

        return await self._guard("delete", alias, handler)

    async def refresh(self, alias: Any = None) -> dict:
        """Reset the blob's expiry to the configured TTL."""
        async def handler() -> dict:
            key = await self._key_for(alias)
            refreshed = await self._store.refresh_ttl(key, self.ttl)
            return {"success": refreshed, "ttl": self.ttl}

        return await self._guard("refresh", alias, handler)

    async def status(self, alias: Any = None) -> dict:
        """Report existence and remaining seconds, never the blob."""
        async def handler() -> dict:
            key = await self._key_for(alias)
            remaining = await self._store.remaining_ttl(key)
            if remaining is None:
                return {"success": False, "exists": False, "message": NOT_FOUND}
            return {"success": True, "exists": True, "ttl_remaining": remaining}

        return await self._guard("status", alias, handler, exists=False)

    async def test_connection(self) -> dict:
        async def handler() -> dict:
            if self._store.needs_reconnect:
                await self._store.reset()
            alive = await self._store.ping()
            return {
                "success": alive,
                "message": (
                    "Redis connection successful" if alive
                    else "Redis connection failed"
                ),
            }

        return await self._guard("test_connection", None, handler)

    # ------------------------------------------------------------------
    # RPC dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, action: str, params: Optional[dict] = None) -> dict:
        """Route an RPC action name to its operation.

        Raises:
            ValidationError: If ``action`` is not a known operation.
        """
        handler = self._actions.get(action)
        if handler is None:
            raise ValidationError(f"Unknown action: {action}")
        params = params if isinstance(params, dict) else {}
        accepted = _ACTION_PARAMS[action]
        return await handler(**{k: v for k, v in params.items() if k in accepted})
