"""Host application events.

Typed replacements for string-named plugin hooks. Handlers are registered
once at startup and return an :class:`Outcome`; a failed outcome is logged
and never reaches the caller, so nothing here can block a login.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger("ephemeral_session.events")

APP_DATA_KEY = "EphemeralSession"


@dataclass(frozen=True)
class Account:
    """Account that has just authenticated."""
    email: str
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Outcome:
    """Result of a best-effort handler."""
    ok: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "Outcome":
        return cls(ok=False, error=error)


LoginSuccessHandler = Callable[[Account], Outcome]
FilterAppDataHandler = Callable[[bool, dict], Outcome]


class EventDispatcher:
    """Registry and dispatcher for host events."""

    def __init__(self):
        self._login_success: list[LoginSuccessHandler] = []
        self._filter_app_data: list[FilterAppDataHandler] = []

    def on_login_success(self, handler: LoginSuccessHandler) -> LoginSuccessHandler:
        self._login_success.append(handler)
        return handler

    def on_filter_app_data(self, handler: FilterAppDataHandler) -> FilterAppDataHandler:
        self._filter_app_data.append(handler)
        return handler

    def _report(self, event: str, outcomes: list[Outcome]) -> list[Outcome]:
        for outcome in outcomes:
            if not outcome.ok:
                logger.warning("Handler for %s failed: %s", event, outcome.error)
        return outcomes

    def login_success(self, account: Account) -> list[Outcome]:
        return self._report(
            "login_success", [handler(account) for handler in self._login_success]
        )

    def filter_app_data(self, is_admin: bool, data: dict) -> list[Outcome]:
        """Let every handler mutate ``data`` before it is sent to the client."""
        return self._report(
            "filter_app_data",
            [handler(is_admin, data) for handler in self._filter_app_data],
        )


def login_success_handler() -> LoginSuccessHandler:
    """Session creation happens client-side; the server only records the login."""
    def handler(account: Account) -> Outcome:
        if not account.email:
            return Outcome.failed("login event without account email")
        logger.info("Ephemeral session: login success for %s", account.email)
        return Outcome()
    return handler


def filter_app_data_handler(enabled: bool, ttl: int) -> FilterAppDataHandler:
    """Expose the subsystem state and TTL to non-admin clients."""
    def handler(is_admin: bool, data: dict) -> Outcome:
        if is_admin:
            return Outcome()
        if not isinstance(data, dict):
            return Outcome.failed("app data is not a mapping")
        data[APP_DATA_KEY] = {"enabled": enabled, "ttl": ttl}
        return Outcome()
    return handler
