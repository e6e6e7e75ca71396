"""
Programmatic API for the prospection pipeline.

Usage:
    from prospection import search_prospects

    result = search_prospects(codes=["52.10"], region="Normandie", product="destratification")
    for prospect in result.results:
        print(prospect.profile.name, prospect.scoring.score)
"""

import asyncio
import logging
from typing import Optional

import httpx

from .cache import create_cache_store
from .config import Settings, load_config
from .enrichment import EnrichmentOrchestrator
from .models import EnrichedProfile, ProspectionResult, SearchCriteria
from .naf import get_registry
from .ratelimit import RateLimiterRegistry
from .scoring import ScoringEngine
from .search import ProspectionSearchService
from .sources import ADAPTERS

logger = logging.getLogger(__name__)


def build_service(
    settings: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ProspectionSearchService:
    """
    Wire cache, rate limiters, adapters, orchestrator and scoring together.

    Args:
        settings: Settings to use (defaults to load_config())
        client: Optional shared HTTP client, mainly for tests

    Returns:
        A ready ProspectionSearchService; call ``aclose()`` when done
    """
    settings = settings or load_config()
    cache = create_cache_store(settings.cache_backend, settings.redis_url)
    limiters = RateLimiterRegistry(max_wait=settings.max_rate_wait)

    sources = {}
    for key, adapter_class in ADAPTERS.items():
        source_settings = settings.sources[key]
        limiter = limiters.get(
            key,
            points=source_settings.rate_points,
            duration=source_settings.rate_duration,
        )
        sources[key] = adapter_class(
            source_settings,
            cache,
            limiter,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_backoff=settings.retry_backoff,
            client=client,
        )

    registry = get_registry()
    orchestrator = EnrichmentOrchestrator(settings, sources, cache, registry=registry)
    logger.debug("Service built with sources: %s", ", ".join(sorted(sources)))
    return ProspectionSearchService(
        settings,
        sources,
        orchestrator,
        registry=registry,
        engine=ScoringEngine(settings.min_score_thresholds),
        cache=cache,
        limiters=limiters,
    )


async def run_with_service(settings: Optional[Settings], operation):
    service = build_service(settings)
    try:
        return await operation(service)
    finally:
        await service.aclose()


def search_prospects(
    codes: Optional[list] = None,
    region: Optional[str] = None,
    department: Optional[str] = None,
    postal_code: Optional[str] = None,
    product: Optional[str] = None,
    limit: int = 20,
    page: int = 1,
    min_score: Optional[int] = None,
    config_path: Optional[str] = None,
    **filters,
) -> ProspectionResult:
    """
    Search and rank prospects synchronously.

    Args:
        codes: Activity codes, full or partial (e.g. "52" or "52.10")
        region: Region name or INSEE code
        department: Department code
        postal_code: Five-digit postal code
        product: destratification | pression | matelas_isolants
        limit: Page size
        page: Page number, from 1
        min_score: Overrides the configured product threshold
        config_path: Optional path to YAML config
        **filters: Other SearchCriteria fields (min_height, energy_classes, ...)

    Returns:
        ProspectionResult for the requested page

    Example:
        result = search_prospects(codes=["10.51"], department="76", product="matelas_isolants")
        print(result.total)
    """
    settings = load_config(config_path)
    criteria = SearchCriteria(
        product=product,
        codes=list(codes or []),
        region=region,
        department=department,
        postal_code=postal_code,
        min_score=min_score,
        page=page,
        limit=limit,
        **filters,
    )
    return asyncio.run(run_with_service(settings, lambda service: service.search(criteria)))


def enrich_company(
    identifier: str,
    product: Optional[str] = None,
    enrich_contacts: bool = False,
    config_path: Optional[str] = None,
) -> EnrichedProfile:
    """
    Enrich one company synchronously from its SIRET or SIREN.

    Raises:
        InputValidationError: If the identifier is malformed
    """
    settings = load_config(config_path)
    return asyncio.run(run_with_service(
        settings,
        lambda service: service.enrich_by_identifier(identifier, product, enrich_contacts),
    ))
