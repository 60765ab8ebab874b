"""FastAPI application factory for gridserve.

Creates the application with:
- Capability-addressed blob endpoints under the configured route prefix
- Health probes
- Correlation IDs for log lines
- Status-code mapping for storage and capability errors
- Lifecycle management for the storage engine connection
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from starlette.types import ExceptionHandler

from gridserve.api.errors import generic_exception_handler, gridserve_exception_handler
from gridserve.api.middleware import CorrelationMiddleware
from gridserve.api.routers import blobs, health
from gridserve.config import Settings
from gridserve.config import settings as default_settings
from gridserve.errors import GridServeError
from gridserve.observability import configure_logging
from gridserve.security.capability import CapabilitySigner, generate_secret_key
from gridserve.storage.factory import create_blob_store, get_blob_store
from gridserve.storage.service import BlobStore

logger = logging.getLogger(__name__)


def create_signer(config: Settings) -> CapabilitySigner:
    """Build the capability signer, generating a throwaway key if none is set."""
    if not config.secret_key:
        logger.warning(
            "GRIDSERVE_SECRET_KEY is not set; using an ephemeral key. "
            "Issued URLs will stop working on restart."
        )
        return CapabilitySigner(generate_secret_key())
    return CapabilitySigner(config.secret_key)


def create_app(
    config: Settings | None = None,
    *,
    blob_store: BlobStore | None = None,
    signer: CapabilitySigner | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings to use (defaults to environment settings)
        blob_store: Storage service (defaults to the configured engine)
        signer: Capability signer (defaults to one keyed by settings)
    """
    if config is None:
        config = default_settings
        blob_store = blob_store or get_blob_store()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Configure logging on startup, release the engine on shutdown."""
        configure_logging(
            json_format=config.env != "dev",
            level=config.log_level,
        )
        logger.info(f"Starting {config.app_name} ({config.env}, backend={config.storage_backend})")

        yield

        logger.info(f"Shutting down {config.app_name}")
        await cast(BlobStore, app.state.blob_store).close()

    app = FastAPI(
        title=config.app_name,
        description="Capability-scoped blob storage with HTTP range support",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.blob_store = blob_store or create_blob_store(config)
    app.state.signer = signer or create_signer(config)

    app.add_middleware(CorrelationMiddleware)

    app.add_exception_handler(GridServeError, cast(ExceptionHandler, gridserve_exception_handler))
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    app.include_router(blobs.router, prefix=config.route_prefix.rstrip("/"))

    return app
