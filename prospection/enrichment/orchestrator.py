"""Enrichment orchestrator fusing every source into one profile per establishment."""

import asyncio
import logging
from typing import Optional

from ..cache import CacheStore
from ..config import Settings
from ..models import (
    Address,
    BuildingCharacteristics,
    CompanyRecord,
    ContactInfo,
    EnrichedProfile,
    Identifier,
    SourceResult,
)
from ..naf import NafRegistry
from ..sources.base import SourceAdapter
from ..validation import department_from_postal_code, parse_identifier
from .fusion import fuse_buildings
from .technical import completeness, recommend_products, technical_fields

logger = logging.getLogger(__name__)

INDUSTRIAL_PRODUCTS = ("matelas_isolants",)
REGULATORY_RADIUS_M = 1000

IDENTITY_WARNING = (
    "Company not found in the registries or registries unavailable; "
    "details must be completed manually"
)


class EnrichmentOrchestrator:
    """
    Builds an EnrichedProfile from the registries, geocoder and building datasets.

    Each step is isolated: a source that fails leaves a warning on the profile
    and marks it partial, but never discards what earlier steps found.

    Usage:
        orchestrator = EnrichmentOrchestrator(settings, adapters, cache)
        profile = await orchestrator.enrich_by_identifier("55208131766522", "destratification")
        print(profile.completeness, profile.sources)
    """

    def __init__(
        self,
        settings: Settings,
        sources: dict[str, SourceAdapter],
        cache: CacheStore,
        registry: Optional[NafRegistry] = None,
    ):
        self.settings = settings
        self.sources = sources
        self.cache = cache
        self.registry = registry

    def _source(self, key: str) -> Optional[SourceAdapter]:
        """Adapter for a settings key, when enabled and wired."""
        if not self.settings.is_enabled(key):
            return None
        return self.sources.get(key)

    # -- entry points ----------------------------------------------------

    async def enrich_by_identifier(
        self,
        identifier: str,
        product_hint: Optional[str] = None,
        enrich_contacts: bool = False,
    ) -> EnrichedProfile:
        """
        Enrich one establishment or company.

        Args:
            identifier: 14-digit SIRET, or 9-digit SIREN resolved to its head office
            product_hint: Product type the technical fields are extracted for
            enrich_contacts: Also query the paid contact source when enabled

        Returns:
            EnrichedProfile, partial when the registries could not identify it

        Raises:
            InputValidationError: If the identifier is malformed
        """
        ident = parse_identifier(identifier)
        profile = EnrichedProfile(identifier=ident)

        record = await self._resolve_identity(ident)
        if record is None:
            profile.partial = True
            profile.warnings.append(IDENTITY_WARNING)
            logger.warning("Identity lookup failed for %s", ident.value)
        else:
            self._apply_record(profile, record)

        return await self._complete(profile, product_hint, enrich_contacts)

    async def enrich_record(
        self,
        record: CompanyRecord,
        product_hint: Optional[str] = None,
        enrich_contacts: bool = False,
    ) -> EnrichedProfile:
        """Enrich a candidate a registry search already identified."""
        profile = self.profile_from_record(record)
        return await self._complete(profile, product_hint, enrich_contacts)

    def profile_from_record(self, record: CompanyRecord) -> EnrichedProfile:
        """Unenriched profile holding only registry data."""
        profile = EnrichedProfile(identifier=record.identifier)
        self._apply_record(profile, record)
        profile.completeness = completeness(profile)
        return profile

    async def enrich_contacts(self, profile: EnrichedProfile) -> EnrichedProfile:
        """Add phone, email and officers from the contact source, if enabled."""
        pappers = self._source("pappers")
        if pappers is None:
            return profile

        result = await pappers.by_identifier(profile.identifier.siren)
        if self._record_step(profile, result):
            contact: ContactInfo = result.value
            if profile.contact is None:
                profile.contact = contact
            else:
                profile.contact.phone = profile.contact.phone or contact.phone
                profile.contact.email = profile.contact.email or contact.email
                profile.contact.website = profile.contact.website or contact.website
                profile.contact.officers = profile.contact.officers or contact.officers
        profile.completeness = completeness(profile)
        return profile

    async def clear_cache(self, pattern: str = "*") -> int:
        """Drop cached source responses matching a glob pattern."""
        removed = await self.cache.delete_pattern(pattern)
        logger.info("Cleared %d cache entries matching %r", removed, pattern)
        return removed

    # -- steps -----------------------------------------------------------

    async def _resolve_identity(self, ident: Identifier) -> Optional[CompanyRecord]:
        """Authoritative registry first, free registry search as fallback."""
        sirene = self._source("sirene")
        without_address = None
        if sirene is not None and getattr(sirene, "is_configured", True):
            result = await sirene.by_identifier(ident.value)
            if result.found and not result.value.address.is_empty():
                return result.value
            if result.found:
                without_address = result.value
                logger.info("Sirene has no address for %s, trying registry search", ident.value)
            elif result.failed:
                logger.info("Sirene unavailable for %s, trying registry search", ident.value)

        recherche = self._source("recherche")
        if recherche is not None:
            result = await recherche.by_identifier(ident.value)
            if result.found:
                return result.value
        return without_address

    def _apply_record(self, profile: EnrichedProfile, record: CompanyRecord) -> None:
        profile.identifier = record.identifier
        profile.name = record.name
        profile.address = record.address
        profile.activity_code = record.activity_code
        profile.activity_label = record.activity_label
        if not profile.activity_label and self.registry is not None:
            profile.activity_label = self.registry.label(record.activity_code)
        profile.active = record.active
        if record.officers:
            profile.contact = ContactInfo(officers=list(record.officers))
        if not profile.address.department:
            profile.address.department = department_from_postal_code(profile.address.postal_code)
        profile.add_source(record.source)

    def _record_step(self, profile: EnrichedProfile, result: SourceResult) -> bool:
        """Note a step's outcome on the profile; True when it found data."""
        if result.failed:
            profile.partial = True
            profile.warnings.append(f"{result.source}: {result.error}")
            return False
        if result.found:
            profile.add_source(result.source)
            return True
        return False

    async def _complete(
        self,
        profile: EnrichedProfile,
        product_hint: Optional[str],
        enrich_contacts: bool,
    ) -> EnrichedProfile:
        """Run every step after identity resolution."""
        if not profile.address.is_empty():
            await self._geocode(profile)

        coordinates = profile.address.coordinates
        profile.building = await self._building(profile)
        await self._energy_diagnostics(profile)

        if product_hint in INDUSTRIAL_PRODUCTS and coordinates is not None:
            georisques = self._source("georisques")
            if georisques is not None:
                result = await georisques.by_coordinates(
                    coordinates.lat, coordinates.lon, REGULATORY_RADIUS_M
                )
                if self._record_step(profile, result):
                    profile.regulatory_sites = result.value

        profile.technical_fields = technical_fields(
            profile.building, profile.energy_diagnostics, product_hint
        )
        profile.recommendations = recommend_products(profile.building, profile.energy_class)

        if enrich_contacts:
            await self.enrich_contacts(profile)

        profile.completeness = completeness(profile)
        logger.info(
            "Enriched %s: completeness %d, sources %s%s",
            profile.identifier.value,
            profile.completeness,
            ",".join(profile.sources),
            " (partial)" if profile.partial else "",
        )
        return profile

    async def _geocode(self, profile: EnrichedProfile) -> None:
        ban = self._source("ban")
        if ban is None:
            return
        result = await ban.geocode(profile.address)
        if self._record_step(profile, result):
            geocoded: Address = result.value
            geocoded.department = geocoded.department or profile.address.department
            profile.address = geocoded

    async def _building(self, profile: EnrichedProfile) -> Optional[BuildingCharacteristics]:
        """Query building datasets concurrently and fuse their answers."""
        address = profile.address
        coordinates = address.coordinates
        if coordinates is None and address.is_empty():
            return None

        bdnb, bdtopo, rnb = self._source("bdnb"), self._source("bdtopo"), self._source("rnb")

        async def from_bdnb() -> Optional[SourceResult]:
            if bdnb is None:
                return None
            if coordinates is not None:
                result = await bdnb.by_coordinates(coordinates.lat, coordinates.lon)
                if result.found or result.failed:
                    return result
            return await bdnb.by_address(address)

        async def from_bdtopo() -> Optional[SourceResult]:
            if bdtopo is None or coordinates is None:
                return None
            return await bdtopo.by_coordinates(coordinates.lat, coordinates.lon)

        async def from_rnb() -> Optional[SourceResult]:
            if rnb is None:
                return None
            if coordinates is not None:
                return await rnb.by_coordinates(coordinates.lat, coordinates.lon)
            return await rnb.by_address(address)

        bdnb_result, bdtopo_result, rnb_result = await asyncio.gather(
            from_bdnb(), from_bdtopo(), from_rnb()
        )

        rnb_id = None
        if rnb_result is not None and self._record_step(profile, rnb_result):
            rnb_id = rnb_result.value[0].rnb_id

        candidates = []
        if bdnb_result is not None and self._record_step(profile, bdnb_result):
            candidates.append(bdnb_result.value[0])
        if bdtopo_result is not None and self._record_step(profile, bdtopo_result):
            surveyed = bdtopo_result.value
            # Prefer the surveyed building carrying the register id over the nearest one
            matching = [b for b in surveyed if rnb_id and b.rnb_id == rnb_id]
            candidates.append(matching[0] if matching else surveyed[0])

        return fuse_buildings(candidates, rnb_id=rnb_id)

    async def _energy_diagnostics(self, profile: EnrichedProfile) -> None:
        """Diagnostics filed under the SIRET, else those at the same address."""
        dpe = self._source("dpe")
        if dpe is None:
            return

        if profile.identifier.siret:
            result = await dpe.by_identifier(profile.identifier.siret)
            if self._record_step(profile, result):
                profile.energy_diagnostics = result.value
                return

        if profile.address.postal_code or profile.address.city:
            result = await dpe.by_address(profile.address)
            if self._record_step(profile, result):
                profile.energy_diagnostics = result.value
