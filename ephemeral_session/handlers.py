"""
aiohttp transport for the Session API.

A single JSON endpoint receives ``{"action": "<Name>", ...params}`` and
answers ``{"action": "<Name>", "result": {...}}``. ``setup()`` refuses to
activate the subsystem when the key mask secret is missing or malformed:
no route is registered and the client is told the feature is disabled.
"""
import logging
from typing import Optional

import orjson
from aiohttp import web

from .api import SessionAPI
from .conf import DEFAULT_TTL, SessionConfig
from .events import EventDispatcher, filter_app_data_handler, login_success_handler
from .exceptions import ConfigurationError, ValidationError
from .masking import KeyMasker
from .storage import SessionStore

logger = logging.getLogger("ephemeral_session")

SESSION_PATH = "/api/v1/session"

SESSION_API = web.AppKey("ephemeral_session_api", SessionAPI)
SESSION_STORE = web.AppKey("ephemeral_session_store", SessionStore)
SESSION_EVENTS = web.AppKey("ephemeral_session_events", EventDispatcher)


def _dumps(obj) -> str:
    return orjson.dumps(obj).decode("utf-8")


def _error(message: str, status: int, action: Optional[str] = None) -> web.Response:
    return web.json_response(
        {"action": action, "result": {"success": False, "error": message}},
        status=status,
        dumps=_dumps,
    )


async def session_rpc(request: web.Request) -> web.Response:
    """Handle one RPC call against the Session API."""
    api = request.app[SESSION_API]
    try:
        body = await request.json(loads=orjson.loads)
    except ValueError:
        return _error("Malformed JSON body", 400)
    if not isinstance(body, dict):
        return _error("Request body must be a JSON object", 400)
    action = body.get("action")
    if not isinstance(action, str):
        return _error("Missing action", 400)
    try:
        result = await api.dispatch(action, body)
    except ValidationError as err:
        return _error(str(err), 404, action)
    return web.json_response({"action": action, "result": result}, dumps=_dumps)


async def _close_store(app: web.Application) -> None:
    await app[SESSION_STORE].close()


def setup(
    app: web.Application,
    config: Optional[SessionConfig] = None,
    dispatcher: Optional[EventDispatcher] = None,
    store: Optional[SessionStore] = None,
    path: str = SESSION_PATH,
) -> bool:
    """Install the ephemeral session subsystem on ``app``.

    Args:
        app: aiohttp application.
        config: Session configuration (loaded from environment if omitted).
        dispatcher: Host event dispatcher to register handlers on.
        store: Optional pre-built SessionStore.
        path: URL path of the RPC endpoint.

    Returns:
        True if the subsystem is active, False if it refused to activate.
    """
    dispatcher = dispatcher or EventDispatcher()
    app[SESSION_EVENTS] = dispatcher
    dispatcher.on_login_success(login_success_handler())

    try:
        config = config or SessionConfig.from_env()
        masker = KeyMasker.from_config(config)
        masker.validate()
    except ConfigurationError as err:
        logger.error("Ephemeral sessions disabled: %s", err)
        ttl = config.ttl_seconds if config is not None else DEFAULT_TTL
        dispatcher.on_filter_app_data(filter_app_data_handler(False, ttl))
        return False

    dispatcher.on_filter_app_data(filter_app_data_handler(True, config.ttl_seconds))
    store = store or SessionStore(config)
    app[SESSION_STORE] = store
    app[SESSION_API] = SessionAPI(config, store, masker)
    app.router.add_post(path, session_rpc)
    app.on_cleanup.append(_close_store)
    logger.info(
        "Ephemeral sessions enabled at %s (ttl=%ss, namespace=%s)",
        path, config.ttl_seconds, config.namespace,
    )
    return True


def create_app(config: Optional[SessionConfig] = None) -> web.Application:
    app = web.Application()
    setup(app, config)
    return app
