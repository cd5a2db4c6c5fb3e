"""
HTTP layer — maps form requests onto the one-time secret store.

Routes:
- ``POST /`` (form ``secret``) → ``save``; returns the key and a share URL
- ``GET /show?key=K`` → ``validate``; tells whether a secret can be fetched
- ``POST /secret`` (form ``key``) → ``read``; returns ``{"secret": ...}``

Security Note:
    Never log request bodies, keys or secrets.
"""
import logging

import orjson
from aiohttp import web

from .config import StoreConfig
from .exceptions import CryptoError, NotFoundError, StorageError
from .storages import AbstractStore, open_store

logger = logging.getLogger("onetimesharer.http")

STORE_KEY = web.AppKey("store", AbstractStore)

NOT_FOUND_MESSAGE = "Could not find requested secret"


def _json(data: dict, status: int = 200) -> web.Response:
    return web.json_response(
        data, status=status, dumps=lambda obj: orjson.dumps(obj).decode("utf-8")
    )


async def handle_create(request: web.Request) -> web.Response:
    """Store the posted secret and return the key for reading it."""
    form = await request.post()
    secret = form.get("secret", "")
    if not isinstance(secret, str) or not secret:
        return _json({"error": "failed to read posted content"}, status=400)
    store = request.app[STORE_KEY]
    try:
        key = await store.save(secret)
    except (CryptoError, StorageError) as err:
        logger.error("Failed to save secret: %s", err)
        return _json({"error": "failed to save secret"}, status=500)
    share_url = f"{request.scheme}://{request.host}/show?key={key}"
    return _json({"key": key, "share_url": share_url})


async def handle_show(request: web.Request) -> web.Response:
    """Tell whether a secret exists, before it is fetched."""
    key = request.query.get("key", "")
    if not key:
        return _json({"error": "key not specified"}, status=400)
    store = request.app[STORE_KEY]
    try:
        found = await store.validate(key)
    except (CryptoError, StorageError) as err:
        logger.error("Failed to validate secret: %s", err)
        return _json({"error": "failed to read secret"}, status=500)
    if not found:
        return _json({"error": NOT_FOUND_MESSAGE}, status=404)
    return _json({"key": key})


async def handle_fetch(request: web.Request) -> web.Response:
    """Consume the secret and return its content."""
    form = await request.post()
    key = form.get("key", "")
    if not isinstance(key, str) or not key:
        return _json({"error": "key not specified"}, status=400)
    store = request.app[STORE_KEY]
    try:
        secret = await store.read(key)
    except NotFoundError:
        return _json({"error": NOT_FOUND_MESSAGE}, status=404)
    except (CryptoError, StorageError) as err:
        logger.error("Failed to read secret: %s", err)
        return _json({"error": "failed to read secret"}, status=500)
    return _json({"secret": secret})


async def _close_store(app: web.Application) -> None:
    await app[STORE_KEY].close()


def create_app(store: AbstractStore, *, payload_limit: int = 5000) -> web.Application:
    """Build the aiohttp application around an opened store.

    Args:
        store: Opened store; closed on application cleanup.
        payload_limit: Maximum request body size in bytes.
    """
    app = web.Application(client_max_size=payload_limit)
    app[STORE_KEY] = store
    app.router.add_post("/", handle_create)
    app.router.add_get("/show", handle_show)
    app.router.add_post("/secret", handle_fetch)
    app.on_cleanup.append(_close_store)
    return app


async def init_app(config: StoreConfig) -> web.Application:
    """Open the configured store and wrap it in an application."""
    store = await open_store(config)
    return create_app(store, payload_limit=config.payload_limit)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = StoreConfig.from_env()
    web.run_app(init_app(config), port=config.port)


if __name__ == "__main__":
    main()
