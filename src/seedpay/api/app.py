"""FastAPI application configuration (payment engine API)."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry, make_asgi_app, multiprocess

from ..domain.shared import ChainDataSource
from ..envs.engine_env import Settings, get_settings
from ..infrastructure.storage import KeyValueStore
from .dependencies import build_container
from .routers import payments, wallet, webhooks

logger = logging.getLogger(__name__)


def _metrics_app():
    # Uvicorn workers each write their own files; aggregate them when configured.
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return make_asgi_app(registry=registry)
    return make_asgi_app()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    chain_source: Optional[ChainDataSource] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        container = await build_container(settings, store, chain_source)
        app.state.engine = container

        stop_event = asyncio.Event()
        poller: Optional[asyncio.Task[None]] = None
        if container.chain_source is not None:
            poller = asyncio.create_task(container.observer.run(stop_event))
        else:
            logger.info("No chain source configured; relying on webhooks only")
        try:
            yield
        finally:
            stop_event.set()
            if poller is not None:
                await poller
            await container.aclose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="HD-wallet payment allocation and confirmation tracking API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(webhooks.router, prefix="/api/v1")
    app.include_router(wallet.router, prefix="/api/v1")
    app.mount("/metrics", _metrics_app())

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.app_name} API",
            "version": settings.app_version,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "network": settings.network.value,
        }

    return app
