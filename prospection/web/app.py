"""FastAPI application factory."""

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prospection.search import ProspectionSearchService

logger = logging.getLogger(__name__)


def create_app(service: Optional[ProspectionSearchService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Search service to expose; built from load_config() when omitted
    """
    if service is None:
        from prospection.api import build_service
        service = build_service()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.service.aclose()
        logger.info("Prospection service closed")

    from prospection import __version__

    app = FastAPI(
        title="CEE Prospection",
        description="Company search, enrichment and scoring for CEE retrofit products",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.service = service

    # CORS middleware for production
    origins = os.environ.get("ALLOWED_ORIGINS", "*")
    if origins != "*":
        origins = [o.strip() for o in origins.split(",")]
    else:
        origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API v1 routes
    from prospection.web.api.v1.router import router as api_router
    app.include_router(api_router)

    return app
