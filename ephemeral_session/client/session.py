"""
EphemeralSessionClient — client side of the ephemeral session protocol.

Encrypts credentials locally under the tab's ephemeral secret and drives the
Session API over an RPC transport:
- ``store_session(alias, password, meta)`` — encrypt and Create
- ``retrieve_session(alias)`` — Get and decrypt
- ``delete_session`` / ``refresh_session`` / ``session_status``

Security Note:
    The secret and the decrypted payload never leave this object; only
    ciphertext, iv, salt, alias and caller meta are sent to the server.
"""
import time
import logging
from typing import Any, Optional

from ..exceptions import SessionError, SessionNotFound, TransportError
from .crypto import PBKDF2_ITERATIONS, decrypt, encrypt
from .storage import SecretKeeper, SecretState

logger = logging.getLogger("ephemeral_session.client")


class EphemeralSessionClient:
    """Client-side session manager.

    Args:
        transport: Object exposing ``async call(action, **params) -> dict``.
        keeper: SecretKeeper for the current tab (a fresh one by default).
        iterations: PBKDF2 iteration count.
        user_agent: Optional user agent recorded in the session meta.
    """

    def __init__(
        self,
        transport: Any,
        keeper: Optional[SecretKeeper] = None,
        iterations: int = PBKDF2_ITERATIONS,
        user_agent: Optional[str] = None,
    ):
        self._transport = transport
        self._keeper = keeper or SecretKeeper()
        self._iterations = iterations
        self._user_agent = user_agent

    # ------------------------------------------------------------------
    # Secret lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> SecretState:
        return self._keeper.state

    def get_or_create_secret(self) -> str:
        return self._keeper.get_or_create_secret()

    def clear_secret(self) -> None:
        self._keeper.clear_secret()

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def store_session(
        self,
        alias: str,
        password: str,
        meta: Optional[dict] = None,
    ) -> dict:
        """Encrypt credentials and store them server-side.

        Returns:
            The Create result (``success``, ``ttl``).

        Raises:
            CryptoError: If encryption fails.
            TransportError: If the Session API cannot be reached.
            SessionError: If the server refused to store the session.
        """
        secret = self.get_or_create_secret()
        session_meta = {"timestamp": int(time.time() * 1000)}
        if self._user_agent:
            session_meta["userAgent"] = self._user_agent
        session_meta.update(meta or {})
        payload = {"alias": alias, "password": password, "meta": session_meta}

        encrypted = await encrypt(secret, payload, self._iterations)
        result = await self._transport.call(
            "Create", alias=alias, meta=session_meta, **encrypted.as_dict(),
        )
        if not result.get("success"):
            raise SessionError(result.get("error") or "Failed to store session")
        logger.debug("Session stored for %s", alias)
        return result

    async def retrieve_session(self, alias: str) -> dict:
        """Fetch and decrypt the stored credentials for ``alias``.

        Raises:
            SessionNotFound: No blob is stored (or the store is unreachable).
            CryptoError: The blob does not decrypt under this tab's secret.
            TransportError: If the Session API cannot be reached.
        """
        secret = self.get_or_create_secret()
        result = await self._transport.call("Get", alias=alias)
        session = result.get("session")
        if not result.get("success") or not isinstance(session, dict):
            raise SessionNotFound(result.get("error") or "Session not found")
        return await decrypt(
            secret,
            session.get("ciphertext"),
            session.get("iv"),
            session.get("salt"),
            self._iterations,
        )

    async def _simple(self, action: str, alias: str) -> bool:
        try:
            result = await self._transport.call(action, alias=alias)
        except TransportError as err:
            logger.error("%s session error for %s: %s", action, alias, err)
            return False
        return bool(result.get("success"))

    async def delete_session(self, alias: str) -> bool:
        return await self._simple("Delete", alias)

    async def refresh_session(self, alias: str) -> bool:
        return await self._simple("Refresh", alias)

    async def session_status(self, alias: str) -> dict:
        try:
            return await self._transport.call("Status", alias=alias)
        except TransportError as err:
            logger.error("Status error for %s: %s", alias, err)
            return {"success": False, "error": str(err)}

    async def test_connection(self) -> dict:
        try:
            return await self._transport.call("TestConnection")
        except TransportError as err:
            return {"success": False, "error": str(err)}
