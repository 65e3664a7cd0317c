"""
Operator commands for Ephemeral Session.

.. code-block:: bash

   $ ephemeral-session generate-secret
   $ EPHEMERAL_SESSION_KEY_MASK_SECRET=... ephemeral-session check
   $ EPHEMERAL_SESSION_KEY_MASK_SECRET=... ephemeral-session serve --port 8080

Changing the key mask secret invalidates every stored session.
"""
import asyncio
import time
import logging

import click
import orjson
from aiohttp import web

from .conf import SessionConfig, generate_secret
from .exceptions import ConfigurationError
from .handlers import create_app
from .storage import SessionStore


@click.group()
@click.option('--debug', is_flag=True, default=False, help='Enable debug logging.')
def main(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@main.command('generate-secret')
def generate_secret_command() -> None:
    """Print a base64-encoded 32-byte key mask secret."""
    click.echo(generate_secret())


async def _check(config: SessionConfig) -> bool:
    store = SessionStore(config)
    try:
        if not await store.ping():
            click.echo("✗ PING failed", err=True)
            return False
        click.echo("✓ PING")
        key = f"{config.namespace}:test:{int(time.time())}"
        value = orjson.dumps({"test": "data", "timestamp": int(time.time())})
        if not await store.set_with_ttl(key, value, 60):
            click.echo("✗ SET test key failed", err=True)
            return False
        click.echo(f"✓ SET test key: {key}")
        retrieved = await store.get(key)
        matches = retrieved is not None and retrieved.encode("utf-8") == value
        click.echo(f"{'✓' if matches else '✗'} GET test key")
        await store.delete(key)
        click.echo("✓ DEL test key")
        return matches
    finally:
        await store.close()


@main.command()
def check() -> None:
    """Verify the Redis connection with a throwaway key."""
    try:
        config = SessionConfig.from_env()
    except ConfigurationError as err:
        raise click.ClickException(str(err)) from err
    click.echo(
        f"Host: {config.host}  Port: {config.port}  "
        f"TLS: {'yes' if config.use_tls else 'no'}  TTL: {config.ttl_seconds}s"
    )
    if not asyncio.run(_check(config)):
        raise click.ClickException("Session store check failed")
    click.echo("All checks passed")


@main.command()
@click.option('--host', default='127.0.0.1', help='Interface to bind.')
@click.option('--port', default=8080, type=int, help='Port to bind.')
def serve(host: str, port: int) -> None:
    """Run the session RPC endpoint."""
    try:
        config = SessionConfig.from_env()
    except ConfigurationError as err:
        raise click.ClickException(str(err)) from err
    web.run_app(create_app(config), host=host, port=port)


if __name__ == '__main__':
    main()
