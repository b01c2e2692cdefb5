#!/usr/bin/env python3
"""
POS Sales Ingestion API - upload, job polling and report endpoints.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from api.middleware.auth import AuthMiddleware
from api.middleware.logging import LoggingMiddleware
from api.middleware.rate_limit import build_limiter, install_rate_limiting
from api.middleware.security_headers import SecurityHeadersMiddleware
from api.routers import health, reports, upload
from db.session import get_database, init_db
from services.worker import JobWorker

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = init_db()
    worker = None
    if settings.run_workers:
        worker = JobWorker(database)
        worker.start()
    app.state.worker = worker
    try:
        yield
    finally:
        if worker is not None:
            worker.stop()
        get_database().dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.project_name,
    version=settings.version,
    description="Ingests POS export files into a deduplicated sales store and serves item movement reports",
    lifespan=lifespan,
)

# Outermost last: CORS -> Logging -> SecurityHeaders -> rate limit -> Auth -> routes
app.add_middleware(AuthMiddleware)
limiter = build_limiter(settings.rate_limit, enabled=settings.rate_limit_enabled)
install_rate_limiting(app, limiter)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=settings.allowed_methods,
    allow_headers=settings.allowed_headers,
)

# Health checks at root and versioned paths
app.include_router(health.router)
app.include_router(health.router, prefix="/api/v1")
app.include_router(upload.router, prefix="/api")
app.include_router(reports.router, prefix="/api")
logger.info("Health, upload and report routers included")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
