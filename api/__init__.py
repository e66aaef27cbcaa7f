"""REST API module for the catalog service.

This module provides HTTP endpoints for:
- Account registration, login and session identity
- Creating, searching, updating and deleting products
- Uploading, listing and deleting photos
- Serving stored images under /uploads
- Real-time notifications via WebSocket
- Service descriptor and health checks
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from assets import URL_PREFIX, AssetStore
from auth import AuthManager
from config import get_settings
from database import DocumentStore, close as db_close, create_store
from notifications import NotificationBroadcaster
from photos import PhotoManager
from products import ProductManager
from .errors import install_error_handlers

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Dict[str, Any]] = None,
    store: Optional[DocumentStore] = None
) -> FastAPI:
    """Build the application.

    Args:
        settings: Validated settings, loaded from settings.conf and the environment when omitted
        store: Document store to use; a PostgreSQL store is opened at startup when omitted

    Returns:
        The configured FastAPI application
    """
    settings = settings if settings is not None else get_settings()
    assets = AssetStore.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown events."""
        logger.info("Initializing API...")
        owns_store = store is None
        active_store = await create_store(settings) if owns_store else store

        app.state.store = active_store
        app.state.auth = AuthManager(
            active_store,
            settings['jwt_secret'],
            rounds=settings['bcrypt_rounds']
        )
        app.state.products = ProductManager(
            active_store, assets,
            delete_replaced_assets=settings['delete_replaced_assets']
        )
        app.state.photos = PhotoManager(
            active_store, assets,
            delete_replaced_assets=settings['delete_replaced_assets']
        )
        app.state.broadcaster = NotificationBroadcaster()

        try:
            yield
        finally:
            logger.info("Shutting down API...")
            await app.state.broadcaster.close()
            if owns_store:
                await active_store.close()
                await db_close()

    app = FastAPI(
        title=settings['service_name'],
        description="REST API for products, photos and live notifications",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.assets = assets

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings['allowed_origins'],
        allow_credentials='*' not in settings['allowed_origins'],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    from .auth import router as auth_router
    from .photos import router as photos_router
    from .products import router as products_router
    from .system import router as system_router
    from .websockets import router as websocket_router

    app.include_router(auth_router)
    app.include_router(products_router)
    app.include_router(photos_router)
    app.include_router(system_router)
    app.include_router(websocket_router)

    app.mount(URL_PREFIX, StaticFiles(directory=str(assets.upload_dir)), name="uploads")

    return app


__all__ = ['create_app']
