"""API v1 router."""

from fastapi import APIRouter

from prospection.web.api.v1 import enrichment, health, naf, prospection

router = APIRouter(prefix="/api/v1")

router.include_router(prospection.router, tags=["prospection"])
router.include_router(enrichment.router, tags=["enrichment"])
router.include_router(naf.router, tags=["naf"])
router.include_router(health.router, tags=["health"])
