"""Volatile, tab-scoped storage for the ephemeral secret.

The secret moves through two states only::

    ABSENT --get_or_create_secret()--> ACTIVE --clear_secret()--> ABSENT

Clearing it orphans every blob encrypted under it.
"""
import enum
import logging
import secrets
from collections.abc import Iterator, MutableMapping
from typing import Optional

logger = logging.getLogger("ephemeral_session.client")

SECRET_STORAGE_KEY = "ephemeral_session_secret"
SECRET_BYTES = 32


class SecretState(enum.Enum):
    ABSENT = "absent"
    ACTIVE = "active"


class TabStorage(MutableMapping[str, str]):
    """In-memory string storage living as long as one tab/session."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def __getitem__(self, key: str) -> str:
        return self._items[key]

    def __setitem__(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("TabStorage only holds strings")
        self._items[key] = value

    def __delitem__(self, key: str) -> None:
        del self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        # values are secrets
        return f"<TabStorage keys={list(self._items)}>"


class SecretKeeper:
    """Owns the ephemeral secret lifecycle."""

    def __init__(
        self,
        storage: Optional[MutableMapping[str, str]] = None,
        name: str = SECRET_STORAGE_KEY,
    ):
        self._storage = storage if storage is not None else TabStorage()
        self._name = name

    @property
    def state(self) -> SecretState:
        return SecretState.ACTIVE if self._storage.get(self._name) else SecretState.ABSENT

    def get_or_create_secret(self) -> str:
        """Return the tab's secret, generating it on first use."""
        secret = self._storage.get(self._name)
        if secret:
            return secret
        secret = secrets.token_urlsafe(SECRET_BYTES)
        self._storage[self._name] = secret
        logger.debug("Generated new ephemeral secret")
        return secret

    def clear_secret(self) -> None:
        self._storage.pop(self._name, None)
        logger.debug("Cleared ephemeral secret")
