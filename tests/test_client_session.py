"""
End-to-end tests for the session client and the login observer.

Tests cover:
- Store / retrieve / delete / refresh / status through the Session API
- The server never receives plaintext or the ephemeral secret
- Fire-and-forget store after login; failures never escape
- Secret cleared on unload
"""
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from ephemeral_session.client import (
    EphemeralSessionClient,
    HttpTransport,
    LocalTransport,
    LoginObserver,
    SecretKeeper,
    SecretState,
)
from ephemeral_session.exceptions import (
    CryptoError,
    SessionError,
    SessionNotFound,
    TransportError,
)
from ephemeral_session.handlers import SESSION_PATH, setup
from ephemeral_session.storage import SessionStore

FAST = 1000


@pytest.fixture
def client(api):
    return EphemeralSessionClient(LocalTransport(api), iterations=FAST, user_agent="pytest")


class RecordingTransport:
    """Wraps a transport and records every request."""

    def __init__(self, inner):
        self.inner = inner
        self.requests = []

    async def call(self, action, **params):
        self.requests.append((action, params))
        return await self.inner.call(action, **params)


class FailingTransport:
    async def call(self, action, **params):
        raise TransportError(f"{action} request failed: connection refused")


class TestClientSession:

    @pytest.mark.asyncio
    async def test_store_and_retrieve(self, client):
        result = await client.store_session("a@b.com", "hunter2", {"signMe": True})
        assert result == {"success": True, "ttl": 14400}
        payload = await client.retrieve_session("a@b.com")
        assert payload["alias"] == "a@b.com"
        assert payload["password"] == "hunter2"
        assert payload["meta"]["signMe"] is True
        assert payload["meta"]["userAgent"] == "pytest"

    @pytest.mark.asyncio
    async def test_server_sees_no_plaintext(self, api, fake_redis):
        transport = RecordingTransport(LocalTransport(api))
        keeper = SecretKeeper()
        client = EphemeralSessionClient(transport, keeper, iterations=FAST)
        await client.store_session("a@b.com", "hunter2")
        secret = keeper.get_or_create_secret()

        action, params = transport.requests[0]
        assert action == "Create"
        assert set(params) == {"alias", "ciphertext", "iv", "salt", "meta"}
        wire = repr(transport.requests) + repr(fake_redis._data)
        assert "hunter2" not in wire
        assert secret not in wire

    @pytest.mark.asyncio
    async def test_retrieve_missing(self, client):
        with pytest.raises(SessionNotFound):
            await client.retrieve_session("nobody@b.com")

    @pytest.mark.asyncio
    async def test_retrieve_after_secret_cleared(self, client):
        await client.store_session("a@b.com", "hunter2")
        client.clear_secret()
        with pytest.raises(CryptoError):
            await client.retrieve_session("a@b.com")

    @pytest.mark.asyncio
    async def test_other_tab_cannot_decrypt(self, api, client):
        await client.store_session("a@b.com", "hunter2")
        other = EphemeralSessionClient(LocalTransport(api), iterations=FAST)
        with pytest.raises(CryptoError):
            await other.retrieve_session("a@b.com")

    @pytest.mark.asyncio
    async def test_delete_refresh_status(self, client):
        await client.store_session("a@b.com", "hunter2")
        assert await client.refresh_session("a@b.com") is True
        status = await client.session_status("a@b.com")
        assert status["exists"] is True
        assert await client.delete_session("a@b.com") is True
        assert await client.delete_session("a@b.com") is False
        assert (await client.session_status("a@b.com"))["exists"] is False

    @pytest.mark.asyncio
    async def test_store_rejected(self, api, fake_redis, client):
        fake_redis.fail = True
        with pytest.raises(SessionError):
            await client.store_session("a@b.com", "hunter2")

    @pytest.mark.asyncio
    async def test_transport_failures_are_soft(self):
        client = EphemeralSessionClient(FailingTransport(), iterations=FAST)
        assert await client.delete_session("a@b.com") is False
        assert await client.refresh_session("a@b.com") is False
        assert (await client.session_status("a@b.com"))["success"] is False
        assert (await client.test_connection())["success"] is False

    @pytest.mark.asyncio
    async def test_unknown_action_locally(self, api):
        result = await LocalTransport(api).call("Drop")
        assert result["success"] is False


@pytest_asyncio.fixture
async def http_transport(config, fake_redis):
    app = web.Application()
    setup(app, config, store=SessionStore(config, client=fake_redis))
    async with TestClient(TestServer(app)) as test_client:
        transport = HttpTransport(str(test_client.make_url(SESSION_PATH)))
        yield transport
        await transport.close()


class TestHttpTransport:

    @pytest.mark.asyncio
    async def test_round_trip_over_http(self, http_transport):
        client = EphemeralSessionClient(http_transport, iterations=FAST)
        await client.store_session("a@b.com", "hunter2")
        assert (await client.retrieve_session("a@b.com"))["password"] == "hunter2"
        assert (await client.test_connection())["success"] is True

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        transport = HttpTransport("http://127.0.0.1:1/api/v1/session", timeout=2)
        try:
            with pytest.raises(TransportError):
                await transport.call("Get", alias="a@b.com")
        finally:
            await transport.close()


class TestLoginObserver:

    @pytest.mark.asyncio
    async def test_login_success_stores_session(self, client):
        observer = LoginObserver(client)
        observer.on_login_submit({"Email": " a@b.com ", "Password": "hunter2", "signMe": "1"})
        task = observer.on_login_response({"data": {"Result": {"ClientIp": "10.0.0.1"}}})
        assert task is not None
        await observer.drain()
        payload = await client.retrieve_session("a@b.com")
        assert payload["password"] == "hunter2"
        assert payload["meta"]["signMe"] is True
        assert payload["meta"]["ip"] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_alias_from_response(self, client):
        observer = LoginObserver(client)
        observer.on_login_submit({"Email": "login-name", "Password": "pw"})
        observer.on_login_response({"data": {"Result": {"AuthEmail": "real@b.com"}}})
        await observer.drain()
        assert (await client.retrieve_session("real@b.com"))["alias"] == "real@b.com"

    @pytest.mark.asyncio
    async def test_login_failure_discards(self, api, fake_redis):
        transport = RecordingTransport(LocalTransport(api))
        observer = LoginObserver(EphemeralSessionClient(transport, iterations=FAST))
        observer.on_login_submit({"Email": "a@b.com", "Password": "hunter2"})
        assert observer.on_login_response({"error": "Authentication failed"}) is None
        assert observer.has_pending is False
        assert observer.on_login_response({"data": {}}) is None
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_incomplete_form_not_captured(self, client):
        observer = LoginObserver(client)
        observer.on_login_submit({"Email": "a@b.com", "Password": ""})
        assert observer.has_pending is False
        observer.on_login_submit(None)
        assert observer.has_pending is False

    @pytest.mark.asyncio
    async def test_store_failure_never_escapes(self, caplog):
        observer = LoginObserver(EphemeralSessionClient(FailingTransport(), iterations=FAST))
        observer.on_login_submit({"Email": "a@b.com", "Password": "hunter2"})
        task = observer.on_login_response({"data": {"Result": {}}})
        await observer.drain()
        assert task.exception() is None
        assert "Failed to store ephemeral session" in caplog.text
        assert "hunter2" not in caplog.text

    @pytest.mark.asyncio
    async def test_unload_clears_secret(self, client):
        observer = LoginObserver(client)
        client.get_or_create_secret()
        observer.on_login_submit({"Email": "a@b.com", "Password": "hunter2"})
        observer.on_unload()
        assert client.state is SecretState.ABSENT
        assert observer.has_pending is False
