"""Activity code (NAF) endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query

from prospection.exceptions import InputValidationError
from prospection.scoring import relevant_codes_for_product, validate_product
from prospection.search import ProspectionSearchService
from prospection.web.api.v1.models import NafCodeResponse
from prospection.web.state import get_service

router = APIRouter(prefix="/naf")


@router.get("/expand/{code}")
async def expand(code: str, service: ProspectionSearchService = Depends(get_service)):
    """Expand a partial code ("52.1") into sub-class codes."""
    registry = service.registry
    codes = registry.expand(code)
    return {
        "code": code,
        "expanded": [NafCodeResponse(code=c, label=registry.label(c) or "") for c in codes],
    }


@router.get("/search", response_model=list[NafCodeResponse])
async def search(
    q: str = Query(..., min_length=2),
    limit: int = Query(default=20, ge=1, le=100),
    service: ProspectionSearchService = Depends(get_service),
):
    """Search codes by code fragment or label."""
    return [
        NafCodeResponse(
            code=c.code,
            label=c.label,
            division=c.division,
            division_label=c.division_label,
        )
        for c in service.registry.search(q, limit)
    ]


@router.get("/product/{product}")
async def product_codes(product: str, service: ProspectionSearchService = Depends(get_service)):
    """Activity codes targeted for a product, with their pertinence."""
    try:
        validate_product(product)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "product": product,
        "codes": relevant_codes_for_product(product),
        "registry_codes": [
            NafCodeResponse(code=c.code, label=c.label) for c in service.registry.codes_for_product(product)
        ],
    }
