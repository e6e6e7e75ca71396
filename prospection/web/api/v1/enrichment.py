"""Single-company enrichment endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from prospection.exceptions import InputValidationError
from prospection.export import profile_to_dict
from prospection.search import ProspectionSearchService
from prospection.web.api.v1.models import CacheClearResponse
from prospection.web.state import get_service

router = APIRouter(prefix="/enrichment")


@router.delete("/cache", response_model=CacheClearResponse)
async def clear_cache(
    pattern: str = Query(default="*", description="Key pattern, e.g. 'bdnb:*'"),
    service: ProspectionSearchService = Depends(get_service),
):
    """Invalidate cached source responses."""
    deleted = await service.clear_cache(pattern)
    return CacheClearResponse(pattern=pattern, deleted=deleted)


@router.get("/{identifier}")
async def enrich(
    identifier: str,
    product: Optional[str] = None,
    contacts: bool = False,
    service: ProspectionSearchService = Depends(get_service),
):
    """
    Enrich one company from its SIRET or SIREN.

    A profile whose identity could not be resolved still comes back, flagged
    ``partial`` with a warning.
    """
    try:
        profile = await service.enrich_by_identifier(identifier, product, contacts)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return profile_to_dict(profile)
