"""Prospection search endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from prospection.exceptions import InputValidationError
from prospection.export import export_csv_string, format_for_export, result_to_dict
from prospection.models import ProspectionResult, SearchCriteria
from prospection.search import ProspectionSearchService
from prospection.web.api.v1.models import SearchRequest, SuggestionResponse
from prospection.web.state import get_service

router = APIRouter(prefix="/prospection")


async def _run_search(request: SearchRequest, service: ProspectionSearchService) -> ProspectionResult:
    try:
        return await service.search(SearchCriteria(**request.model_dump()))
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/search")
async def search(request: SearchRequest, service: ProspectionSearchService = Depends(get_service)):
    """
    Search, enrich and rank prospects.

    Either ``codes`` or a geographic filter is required. Results come back
    ranked by score, then by data completeness.
    """
    result = await _run_search(request, service)
    return result_to_dict(result)


@router.post("/export")
async def export_csv(request: SearchRequest, service: ProspectionSearchService = Depends(get_service)):
    """Same search as /search, returned as a semicolon-separated CSV download."""
    result = await _run_search(request, service)
    content = export_csv_string(format_for_export(result))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="prospects.csv"'},
    )


@router.get("/suggest", response_model=list[SuggestionResponse])
async def suggest(
    q: str = Query(..., description="Partial company name, 3 characters minimum"),
    limit: int = Query(default=10, ge=1, le=25),
    service: ProspectionSearchService = Depends(get_service),
):
    """Company name autocomplete."""
    suggestions = await service.suggest(q, limit)
    return [
        SuggestionResponse(
            siret=s.siret,
            siren=s.siren,
            name=s.name,
            label=s.label,
            postal_code=s.postal_code,
            city=s.city,
            activity_code=s.activity_code,
        )
        for s in suggestions
    ]
