"""Prospection search: registry candidates, enrichment, filtering and ranking."""

import asyncio
import logging
from dataclasses import replace
from typing import Optional

from .cache import CacheStore
from .config import MISSING_DATA_POLICIES, Settings
from .dedup import deduplicate_records
from .enrichment import EnrichmentOrchestrator
from .exceptions import InputValidationError
from .models import (
    CompanyRecord,
    EnrichedProfile,
    ProspectionResult,
    RankedProspect,
    SearchCriteria,
    Suggestion,
)
from .naf import NafRegistry, get_registry
from .ratelimit import RateLimiterRegistry
from .regions import get_region
from .scoring import ScoringEngine, validate_product
from .scoring.rubric import floor_area, heating_energy
from .sources.base import SourceAdapter
from .validation import validate_department, validate_postal_code

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
MIN_SUGGEST_LENGTH = 3


def _keep_missing(policy: str) -> bool:
    return policy == "keep"


def passes_technical_filters(profile: EnrichedProfile, criteria: SearchCriteria, policy: str) -> bool:
    """
    Whether a profile satisfies the hard technical thresholds.

    A profile lacking the data a filter needs is kept or dropped according
    to ``policy`` ("keep" or "drop"), filter by filter.
    """
    building = profile.building

    if criteria.min_height is not None:
        height = building.height if building else None
        if height is None:
            if not _keep_missing(policy):
                return False
        elif height < criteria.min_height:
            return False

    if criteria.min_floor_area is not None:
        area = floor_area(profile)
        if area is None:
            if not _keep_missing(policy):
                return False
        elif area < criteria.min_floor_area:
            return False

    if criteria.heating_types:
        parts = [heating_energy(profile)]
        if building is not None:
            parts += [building.heating_type, building.heating_energy, building.heating_installation]
        heating = " ".join(p for p in parts if p).lower()
        if not heating:
            if not _keep_missing(policy):
                return False
        elif not any(t.lower() in heating for t in criteria.heating_types):
            return False

    if criteria.energy_classes:
        energy_class = profile.energy_class
        allowed = {c.upper() for c in criteria.energy_classes}
        if energy_class is None:
            if not _keep_missing(policy):
                return False
        elif energy_class not in allowed:
            return False

    return True


class ProspectionSearchService:
    """
    Find, qualify and rank businesses for a product line.

    Usage:
        service = build_service(settings)
        result = await service.search(SearchCriteria(
            product="destratification", codes=["52.10"], region="Normandie", limit=5,
        ))
        for prospect in result.results:
            print(prospect.profile.name, prospect.scoring.score)
    """

    def __init__(
        self,
        settings: Settings,
        sources: dict[str, SourceAdapter],
        orchestrator: EnrichmentOrchestrator,
        registry: Optional[NafRegistry] = None,
        engine: Optional[ScoringEngine] = None,
        cache: Optional[CacheStore] = None,
        limiters: Optional[RateLimiterRegistry] = None,
    ):
        self.settings = settings
        self.sources = sources
        self.orchestrator = orchestrator
        self.registry = registry or get_registry()
        self.engine = engine or ScoringEngine(settings.min_score_thresholds)
        self.cache = cache or orchestrator.cache
        self.limiters = limiters

    @property
    def recherche(self) -> Optional[SourceAdapter]:
        if not self.settings.is_enabled("recherche"):
            return None
        return self.sources.get("recherche")

    # -- search ----------------------------------------------------------

    def _validate(self, criteria: SearchCriteria) -> SearchCriteria:
        """Check criteria and resolve region names to codes."""
        if not criteria.codes and not criteria.has_geography():
            raise InputValidationError(
                "A classification code or a geographic filter (region, department, "
                "postal code) is required"
            )
        if criteria.product is not None:
            validate_product(criteria.product)
        if criteria.page < 1:
            raise InputValidationError("page must be >= 1")
        if not 1 <= criteria.limit <= MAX_PAGE_SIZE:
            raise InputValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if criteria.min_score is not None and not 0 <= criteria.min_score <= 100:
            raise InputValidationError("min_score must be between 0 and 100")
        policy = criteria.missing_data_policy
        if policy is not None and policy not in MISSING_DATA_POLICIES:
            raise InputValidationError(
                f"missing_data_policy must be one of {', '.join(MISSING_DATA_POLICIES)}"
            )

        region = None
        if criteria.region:
            found = get_region(criteria.region)
            if found is None:
                raise InputValidationError(f"Unknown region {criteria.region!r}")
            region = found.code
        department = validate_department(criteria.department) if criteria.department else None
        postal_code = validate_postal_code(criteria.postal_code) if criteria.postal_code else None

        return replace(criteria, region=region, department=department, postal_code=postal_code)

    async def _candidates(self, criteria: SearchCriteria, codes: list) -> tuple[list[CompanyRecord], set]:
        """Registry search per expanded code, deduplicated by establishment."""
        recherche = self.recherche
        if recherche is None:
            logger.warning("Registry search source disabled: no candidates")
            return [], set()

        limit = self.settings.max_candidates
        results = await asyncio.gather(*[
            recherche.search(
                query=criteria.query,
                code=code,
                region=criteria.region,
                department=criteria.department,
                postal_code=criteria.postal_code,
                limit=limit,
            )
            for code in (codes or [None])
        ])

        records: list[CompanyRecord] = []
        used = set()
        for result in results:
            if result.found:
                used.add(result.source)
                records.extend(result.value)
        return deduplicate_records(records)[:limit], used

    async def _enrich_all(self, records: list[CompanyRecord], product: str) -> list[EnrichedProfile]:
        semaphore = asyncio.Semaphore(max(self.settings.max_enrich_concurrency, 1))

        async def enrich(record: CompanyRecord) -> EnrichedProfile:
            async with semaphore:
                return await self.orchestrator.enrich_record(record, product_hint=product)

        return list(await asyncio.gather(*[enrich(r) for r in records]))

    async def _enrich_contacts(self, ranked: list[RankedProspect]) -> None:
        subset = ranked[: self.settings.contact_enrich_limit]
        semaphore = asyncio.Semaphore(max(self.settings.max_enrich_concurrency, 1))

        async def enrich(prospect: RankedProspect) -> None:
            async with semaphore:
                await self.orchestrator.enrich_contacts(prospect.profile)

        await asyncio.gather(*[enrich(p) for p in subset])

    async def search(self, criteria: SearchCriteria) -> ProspectionResult:
        """
        Run a prospection search.

        Args:
            criteria: Codes and/or geography, optional product, technical
                filters, scoring threshold and pagination

        Returns:
            One page of prospects ranked by score then completeness, the
            pre-pagination total and the sources that contributed

        Raises:
            InputValidationError: If neither codes nor geography is given, or a
                filter value is malformed
        """
        criteria = self._validate(criteria)

        codes: list[str] = []
        if criteria.codes:
            codes = self.registry.expand_all(criteria.codes)
            if not codes:
                logger.warning("No classification code matches %s", criteria.codes)
                return self._result([], criteria, codes, set())
            logger.info("Expanded %s to %d codes", criteria.codes, len(codes))

        records, used = await self._candidates(criteria, codes)
        logger.info("Found %d unique candidates", len(records))

        product = criteria.product or self.settings.default_product
        if criteria.product or criteria.has_technical_filters():
            profiles = await self._enrich_all(records, product)
        else:
            profiles = [self.orchestrator.profile_from_record(r) for r in records]

        if criteria.has_technical_filters():
            policy = criteria.missing_data_policy or self.settings.missing_data_policy
            before = len(profiles)
            profiles = [p for p in profiles if passes_technical_filters(p, criteria, policy)]
            logger.info("Technical filters kept %d of %d candidates", len(profiles), before)

        threshold = criteria.min_score
        if threshold is None:
            threshold = self.settings.threshold_for(product)

        ranked = []
        for profile in profiles:
            scoring = self.engine.score(profile, product, threshold=threshold)
            if scoring.eligible:
                ranked.append(RankedProspect(profile=profile, scoring=scoring))
        ranked.sort(key=lambda r: (r.scoring.score, r.profile.completeness), reverse=True)

        if criteria.enrich_contacts and ranked:
            await self._enrich_contacts(ranked)

        for prospect in ranked:
            used.update(prospect.profile.sources)
        return self._result(ranked, criteria, codes, used)

    def _result(self, ranked: list[RankedProspect], criteria: SearchCriteria,
                codes: list, used: set) -> ProspectionResult:
        start = (criteria.page - 1) * criteria.limit
        summary = criteria.to_dict()
        summary["expanded_codes"] = codes
        return ProspectionResult(
            results=ranked[start:start + criteria.limit],
            total=len(ranked),
            criteria=summary,
            sources=used,
            page=criteria.page,
            limit=criteria.limit,
        )

    # -- other operations ------------------------------------------------

    async def suggest(self, partial: str, limit: int = 10) -> list[Suggestion]:
        """Autocomplete candidates; fewer than 3 characters yields nothing."""
        partial = (partial or "").strip()
        recherche = self.recherche
        if len(partial) < MIN_SUGGEST_LENGTH or recherche is None:
            return []
        result = await recherche.suggest(partial, limit)
        return result.value

    async def enrich_by_identifier(
        self,
        identifier: str,
        product: Optional[str] = None,
        enrich_contacts: bool = False,
    ) -> EnrichedProfile:
        if product is not None:
            validate_product(product)
        return await self.orchestrator.enrich_by_identifier(identifier, product, enrich_contacts)

    async def clear_cache(self, pattern: str = "*") -> int:
        return await self.orchestrator.clear_cache(pattern)

    def health(self) -> dict:
        """Cache backend, throttling counters and enabled sources."""
        return {
            "status": "ok",
            "cache": self.cache.stats() if self.cache else None,
            "rate_limits": self.limiters.stats() if self.limiters else {},
            "enabled_sources": sorted(s for s in self.sources if self.settings.is_enabled(s)),
        }

    async def aclose(self) -> None:
        for adapter in self.sources.values():
            await adapter.aclose()
        if self.cache is not None:
            await self.cache.close()
