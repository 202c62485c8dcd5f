from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from credential_service.api.auth import router as auth_router
from credential_service.api.credentials import router as credentials_router
from credential_service.api.health import router as health_router
from credential_service.api.holders import router as holders_router
from credential_service.api.metrics_endpoint import router as metrics_router
from credential_service.core.config import SETTINGS
from credential_service.core.logging import setup_logging
from credential_service.db.redis import lifespan_redis
from credential_service.middleware.metrics import MetricsMiddleware
from credential_service.middleware.request_context import RequestContextMiddleware
from credential_service.services.content_store import content_store
from credential_service.services.ledger import ledger_client

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Outbound HTTP clients close after Redis, in reverse order of use.
    try:
        async with lifespan_redis():
            yield
    finally:
        await content_store.aclose()
        await ledger_client.aclose()
        logger.info("Outbound clients closed")


app = FastAPI(
    title="credential-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(auth_router)
app.include_router(credentials_router)
app.include_router(health_router)
app.include_router(holders_router)

logger.info(
    "credential-service started  env=%s log_level=%s port=%d ledger=%s content_store=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "rpc" if SETTINGS.ledger_rpc_url else "in-memory",
    "pinata" if SETTINGS.content_store_api_url else "in-memory",
)
