"""
Session Store — Thin fail-soft TTL adapter over ``redis.asyncio``.

Exposes the small set of primitives the Session API needs:
- ``set_with_ttl(key, value, ttl)`` — write/overwrite with expiry (SETEX)
- ``get(key)`` — value or None (never written and expired look the same)
- ``delete(key)`` — True iff a key was removed
- ``remaining_ttl(key)`` — seconds or None
- ``refresh_ttl(key, ttl)`` — reset expiry, value untouched
- ``ping()`` — liveness check

One logical connection per store (a blocking pool of size one), built
lazily on first use and reused; concurrent coroutines queue for it.
Failures are never retried here: they are logged, reported as False/None,
and flagged through ``needs_reconnect`` so the caller can ``reset()``.

Security Note:
    Only masked keys reach this layer. Never log stored values.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from redis.asyncio import BlockingConnectionPool, Redis
from redis.asyncio.connection import Connection, SSLConnection
from redis.exceptions import RedisError

from ..exceptions import ConfigurationError, StoreConnectionError

logger = logging.getLogger("ephemeral_session.storage")

T = TypeVar("T")

_STORE_FAULTS = (RedisError, OSError, asyncio.TimeoutError)


class SessionStore:
    """Redis-backed TTL store for opaque session blobs.

    Args:
        config: SessionConfig with connection parameters.
        client: Optional pre-built async Redis client. When given, the store
            never builds, replaces or closes a connection of its own.
    """

    def __init__(self, config: Any, client: Any = None):
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._in_flight: dict[int, int] = {}
        self._retired: dict[int, Any] = {}
        self.needs_reconnect = False
        self.last_error: Optional[StoreConnectionError] = None

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _build_client(self) -> Redis:
        """Build the Redis client from config. Performs no network I/O."""
        cfg = self._config
        if cfg is None or not getattr(cfg, "host", None):
            raise ConfigurationError("Redis configuration not set")
        password = (
            cfg.store_password.get_secret_value()
            if cfg.store_password is not None else None
        )
        pool = BlockingConnectionPool(
            host=cfg.host,
            port=cfg.port,
            password=password,
            connection_class=SSLConnection if cfg.use_tls else Connection,
            max_connections=1,
            timeout=cfg.socket_timeout,
            socket_timeout=cfg.socket_timeout,
            socket_connect_timeout=cfg.socket_timeout,
            decode_responses=True,
        )
        logger.debug(
            "Session store connection: %s://%s:%s",
            "tls" if cfg.use_tls else "tcp", cfg.host, cfg.port,
        )
        return Redis(connection_pool=pool)

    def _connection(self) -> Any:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    async def reset(self) -> None:
        """Discard a failed connection so the next call reconnects.

        Commands still running on the old connection finish on it; it is
        closed once the last of them returns.
        """
        if self._owns_client and self._client is not None:
            client, self._client = self._client, None
            if self._in_flight.get(id(client)):
                self._retired[id(client)] = client
            else:
                await self._close_client(client)
        self.needs_reconnect = False

    async def close(self) -> None:
        if not self._owns_client:
            return
        clients = list(self._retired.values())
        self._retired.clear()
        if self._client is not None:
            clients.append(self._client)
            self._client = None
        for client in clients:
            await self._close_client(client)

    async def _close_client(self, client: Any) -> None:
        try:
            await client.aclose(close_connection_pool=True)
        except _STORE_FAULTS as err:
            logger.debug("Error closing session store connection: %s", err)

    async def _release(self, client: Any) -> None:
        ident = id(client)
        remaining = self._in_flight.get(ident, 0) - 1
        if remaining > 0:
            self._in_flight[ident] = remaining
            return
        self._in_flight.pop(ident, None)
        retired = self._retired.pop(ident, None)
        if retired is not None:
            await self._close_client(retired)

    # ------------------------------------------------------------------
    # Fail-soft execution
    # ------------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        key: Optional[str],
        command: Callable[[Any], Awaitable[T]],
        default: T,
    ) -> T:
        client = self._connection()
        self._in_flight[id(client)] = self._in_flight.get(id(client), 0) + 1
        try:
            return await command(client)
        except _STORE_FAULTS as err:
            self.needs_reconnect = True
            self.last_error = StoreConnectionError(f"{operation} failed: {err}")
            logger.error(
                "Session store %s error (key=%s): %s",
                operation, key, err,
            )
            return default
        finally:
            await self._release(client)

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def set_with_ttl(self, key: str, value: Any, ttl: int) -> bool:
        """Write ``value`` under ``key`` expiring after ``ttl`` seconds."""
        if ttl <= 0:
            raise ValueError(f"TTL must be a positive number of seconds, got {ttl}")

        async def command(client):
            return await client.setex(key, ttl, value)

        result = await self._execute("set", key, command, False)
        return result is True or result == "OK"

    async def get(self, key: str) -> Optional[Any]:
        async def command(client):
            return await client.get(key)

        return await self._execute("get", key, command, None)

    async def delete(self, key: str) -> bool:
        async def command(client):
            return await client.delete(key)

        return (await self._execute("delete", key, command, 0)) > 0

    async def remaining_ttl(self, key: str) -> Optional[int]:
        """Seconds left before ``key`` expires, or None if it does not exist.

        Redis answers -2 for a missing key and -1 for a key without expiry;
        both are reported as None.
        """
        async def command(client):
            return await client.ttl(key)

        ttl = await self._execute("ttl", key, command, None)
        if ttl is None or ttl < 0:
            return None
        return int(ttl)

    async def refresh_ttl(self, key: str, ttl: int) -> bool:
        if ttl <= 0:
            raise ValueError(f"TTL must be a positive number of seconds, got {ttl}")

        async def command(client):
            return await client.expire(key, ttl)

        result = await self._execute("expire", key, command, False)
        return result is True or result == 1

    async def ping(self) -> bool:
        async def command(client):
            return await client.ping()

        result = await self._execute("ping", None, command, False)
        return result is True or result == "PONG"
