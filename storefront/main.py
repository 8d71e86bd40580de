import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from storefront.client.api import ApiClient
from storefront.config import Settings
from storefront.core.session import SessionRegistry
from storefront.routers import auth, cart, checkout, health, promos
from storefront.storage.factory import open_storage

log = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, storage=None, api=None) -> FastAPI:
    settings = settings or Settings.from_env()

    # --- Lifespan ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        client = api or ApiClient(settings.api_base_url, timeout=settings.request_timeout)
        store = storage or open_storage(settings.storage_url, redis_ttl_seconds=settings.redis_ttl_seconds)
        app.state.settings = settings
        app.state.api = client
        app.state.registry = SessionRegistry(store, client, settings)
        log.info(f"[startup] Storefront listo contra {settings.api_base_url}.")
        yield
        app.state.registry.close()
        if api is None:
            await client.aclose()
        log.info("[shutdown] Storefront finalizado correctamente.")

    # --- Inicializacion de la app ---
    app = FastAPI(title="Storefront Cart API", version="1.0.0", lifespan=lifespan)

    # --- Routers ---
    app.include_router(health.router)
    app.include_router(cart.router)
    app.include_router(promos.router)
    app.include_router(auth.router)
    app.include_router(checkout.router)
    return app


app = create_app()
