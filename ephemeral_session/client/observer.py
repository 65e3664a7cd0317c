"""Login flow orchestration.

Wires the session client to the host's login lifecycle:

- ``on_login_submit(form)`` captures the submitted credentials;
- ``on_login_response(detail)`` stores them in the background after a
  successful login, or drops them after a failed one;
- ``on_unload()`` always clears the ephemeral secret.

The background store is fire-and-forget: its failures are logged and never
reach the login flow. Nothing cancels it; if the page goes away first the
store is simply lost.
"""
import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .session import EphemeralSessionClient

logger = logging.getLogger("ephemeral_session.client")


@dataclass
class PendingCredentials:
    email: str
    password: str
    sign_me: bool = False

    def __repr__(self) -> str:
        return f"<PendingCredentials email={self.email!r}>"


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


class LoginObserver:
    def __init__(self, client: EphemeralSessionClient):
        self._client = client
        self._pending: Optional[PendingCredentials] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def on_login_submit(self, form: Any) -> None:
        """Capture ``Email``/``Password``/``signMe`` from a login form."""
        form = _mapping(form)
        email = str(form.get("Email") or "").strip()
        password = form.get("Password") or ""
        if email and isinstance(password, str) and password:
            self._pending = PendingCredentials(
                email=email,
                password=password,
                sign_me=str(form.get("signMe", "")) == "1",
            )
        else:
            self._pending = None

    def on_login_response(self, detail: Any) -> Optional[asyncio.Task]:
        """Schedule the encrypted store after a successful login.

        Must be called from a running event loop.

        Returns:
            The background task, or None if nothing was scheduled.
        """
        detail = _mapping(detail)
        pending, self._pending = self._pending, None
        if detail.get("error") or pending is None:
            return None

        result = _mapping(_mapping(detail.get("data")).get("Result"))
        account = _mapping(result.get("Account"))
        alias = str(
            result.get("AuthEmail") or result.get("Email") or account.get("Email") or ""
        ).strip() or pending.email

        meta = {"signMe": pending.sign_me, "ip": result.get("ClientIp") or ""}
        task = asyncio.get_running_loop().create_task(
            self._store(alias, pending.password, meta)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _store(self, alias: str, password: str, meta: dict) -> None:
        try:
            await self._client.store_session(alias, password, meta)
        except Exception as err:
            logger.error("Failed to store ephemeral session for %s: %s", alias, err)

    def on_unload(self) -> None:
        self._pending = None
        self._client.clear_secret()

    async def drain(self) -> None:
        """Wait for in-flight background stores."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
