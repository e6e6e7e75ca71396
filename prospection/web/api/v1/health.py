"""Health endpoint."""

from fastapi import APIRouter, Depends

from prospection.search import ProspectionSearchService
from prospection.web.api.v1.models import HealthResponse
from prospection.web.state import get_service

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(service: ProspectionSearchService = Depends(get_service)):
    """Cache backend, per-source throttling and enabled sources."""
    from prospection import __version__

    return HealthResponse(version=__version__, **service.health())
