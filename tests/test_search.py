"""Tests for the prospection search service, filtering and deduplication."""

import pytest

from conftest import FakeSource, failed, make_profile, make_record, ok
from prospection.dedup import deduplicate_records
from prospection.enrichment import EnrichmentOrchestrator, completeness
from prospection.exceptions import InputValidationError
from prospection.models import (
    BuildingCharacteristics,
    EnergyDiagnostic,
    Identifier,
    SearchCriteria,
    Suggestion,
)
from prospection.naf import get_registry
from prospection.search import ProspectionSearchService, passes_technical_filters

SOURCE = "recherche-entreprises"

SIRET_A = "11111111100011"
SIRET_B = "22222222200022"
SIRET_C = "33333333300033"


class StubOrchestrator(EnrichmentOrchestrator):
    """Attaches prepared buildings instead of querying building sources."""

    def __init__(self, settings, cache, buildings=None):
        super().__init__(settings, {}, cache, registry=get_registry())
        self.buildings = buildings or {}
        self.enriched = []
        self.contacted = []

    async def enrich_record(self, record, product_hint=None, enrich_contacts=False):
        self.enriched.append((record.identifier.siret, product_hint))
        profile = self.profile_from_record(record)
        profile.building = self.buildings.get(record.identifier.siret)
        if profile.building is not None:
            profile.add_source("bdnb")
        profile.completeness = completeness(profile)
        return profile

    async def enrich_contacts(self, profile):
        self.contacted.append(profile.identifier.siret)
        return profile


def warehouses():
    return {
        "52.10A": [make_record(siret=SIRET_A, name="FROID LOGISTIQUE", code="52.10A")],
        "52.10B": [
            make_record(siret=SIRET_B, name="STOCKAGE NORMAND", code="52.10B"),
            make_record(siret=SIRET_C, name="DEPOT DU PORT", code="52.10B"),
        ],
    }


BUILDINGS = {
    SIRET_A: BuildingCharacteristics(height=9.0, floor_area=2500.0, sources=["bdnb"]),
    SIRET_B: BuildingCharacteristics(height=5.0, sources=["bdnb"]),
}


def registry_search(by_code):
    def search(**kwargs):
        return ok(SOURCE, list(by_code.get(kwargs.get("code"), [])))
    return search


@pytest.fixture
def recherche():
    return FakeSource(SOURCE, search=registry_search(warehouses()),
                      suggest=ok(SOURCE, [Suggestion(siret=SIRET_A, siren=SIRET_A[:9], name="X")]))


@pytest.fixture
def orchestrator(settings, cache):
    return StubOrchestrator(settings, cache, BUILDINGS)


@pytest.fixture
def service(settings, recherche, orchestrator):
    return ProspectionSearchService(settings, {"recherche": recherche}, orchestrator)


def names(result):
    return [p.profile.name for p in result.results]


class TestValidation:
    """Malformed criteria are rejected before any query."""

    @pytest.mark.asyncio
    async def test_codes_or_geography_required(self, service, recherche):
        with pytest.raises(InputValidationError, match="geographic filter"):
            await service.search(SearchCriteria(product="destratification"))
        assert recherche.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides", [
        {"region": "Atlantide"},
        {"department": "7"},
        {"postal_code": "766"},
        {"limit": 0},
        {"limit": 101},
        {"page": 0},
        {"product": "chauffage"},
        {"min_score": 101},
        {"missing_data_policy": "maybe"},
    ])
    async def test_invalid_values(self, service, overrides):
        criteria = SearchCriteria(codes=["52.10"], **overrides)
        with pytest.raises(InputValidationError):
            await service.search(criteria)


class TestSearch:
    """Candidate gathering, enrichment and ranking."""

    @pytest.mark.asyncio
    async def test_codes_are_expanded_and_region_resolved(self, service, recherche):
        result = await service.search(SearchCriteria(
            product="destratification", codes=["52.10"], region="Normandie",
        ))

        calls = recherche.called("search")
        assert [c[2]["code"] for c in calls] == ["52.10A", "52.10B"]
        assert all(c[2]["region"] == "28" for c in calls)
        assert result.criteria["expanded_codes"] == ["52.10A", "52.10B"]
        assert result.criteria["region"] == "28"
        assert result.total == 3

    @pytest.mark.asyncio
    async def test_ranked_by_score(self, service):
        result = await service.search(SearchCriteria(product="destratification", codes=["52.10"]))

        assert names(result) == ["FROID LOGISTIQUE", "STOCKAGE NORMAND", "DEPOT DU PORT"]
        assert [p.scoring.score for p in result.results] == [75, 35, 15]
        assert result.sources == {SOURCE, "bdnb"}

    @pytest.mark.asyncio
    async def test_ties_broken_by_completeness(self, settings, cache, recherche):
        buildings = {SIRET_B: BuildingCharacteristics(usage="Bureaux", sources=["bdnb"])}
        orchestrator = StubOrchestrator(settings, cache, buildings)
        service = ProspectionSearchService(settings, {"recherche": recherche}, orchestrator)

        result = await service.search(SearchCriteria(product="destratification", codes=["52.10B"]))

        assert [p.scoring.score for p in result.results] == [15, 15]
        assert names(result) == ["STOCKAGE NORMAND", "DEPOT DU PORT"]

    @pytest.mark.asyncio
    async def test_duplicates_across_codes_are_merged(self, settings, orchestrator):
        same = make_record(siret=SIRET_A, code="52.10A")
        recherche = FakeSource(SOURCE, search=registry_search({
            "52.10A": [same], "52.10B": [make_record(siret=SIRET_A, code="52.10A")],
        }))
        service = ProspectionSearchService(settings, {"recherche": recherche}, orchestrator)

        result = await service.search(SearchCriteria(product="destratification", codes=["52.10"]))

        assert result.total == 1

    @pytest.mark.asyncio
    async def test_geography_only_searches_once(self, service, recherche):
        await service.search(SearchCriteria(department="76"))

        calls = recherche.called("search")
        assert len(calls) == 1
        assert calls[0][2]["code"] is None
        assert calls[0][2]["department"] == "76"

    @pytest.mark.asyncio
    async def test_unknown_code_returns_empty_without_querying(self, service, recherche):
        result = await service.search(SearchCriteria(codes=["00"]))

        assert result.total == 0
        assert result.results == []
        assert result.criteria["expanded_codes"] == []
        assert recherche.calls == []

    @pytest.mark.asyncio
    async def test_without_product_or_filters_no_enrichment(self, service, orchestrator):
        result = await service.search(SearchCriteria(codes=["52.10"]))

        assert orchestrator.enriched == []
        assert result.total == 3
        assert all(p.scoring.product == "destratification" for p in result.results)
        assert all(p.profile.building is None for p in result.results)

    @pytest.mark.asyncio
    async def test_product_is_passed_as_hint(self, service, orchestrator):
        await service.search(SearchCriteria(product="pression", codes=["52.10A"]))
        assert orchestrator.enriched == [(SIRET_A, "pression")]

    @pytest.mark.asyncio
    async def test_registry_failure_gives_empty_result(self, settings, orchestrator):
        recherche = FakeSource(SOURCE, search=failed(SOURCE, "server error: 503"))
        service = ProspectionSearchService(settings, {"recherche": recherche}, orchestrator)

        result = await service.search(SearchCriteria(product="destratification", codes=["52.10A"]))

        assert result.total == 0
        assert result.sources == set()


class TestFiltersAndThresholds:
    """Technical filters, missing-data policy and minimum score."""

    @pytest.mark.asyncio
    async def test_missing_height_kept_by_default(self, service):
        result = await service.search(SearchCriteria(
            product="destratification", codes=["52.10"], min_height=6,
        ))
        assert names(result) == ["FROID LOGISTIQUE", "DEPOT DU PORT"]

    @pytest.mark.asyncio
    async def test_missing_height_dropped_on_request(self, service):
        result = await service.search(SearchCriteria(
            product="destratification", codes=["52.10"], min_height=6, missing_data_policy="drop",
        ))
        assert names(result) == ["FROID LOGISTIQUE"]

    @pytest.mark.asyncio
    async def test_configured_policy(self, settings, service):
        settings.missing_data_policy = "drop"
        result = await service.search(SearchCriteria(codes=["52.10"], min_floor_area=1000))
        assert names(result) == ["FROID LOGISTIQUE"]

    @pytest.mark.asyncio
    async def test_filters_trigger_enrichment_without_product(self, service, orchestrator):
        await service.search(SearchCriteria(codes=["52.10A"], min_height=6))
        assert orchestrator.enriched == [(SIRET_A, "destratification")]

    @pytest.mark.asyncio
    async def test_min_score_excludes_low_scores(self, service):
        result = await service.search(SearchCriteria(
            product="destratification", codes=["52.10"], min_score=30,
        ))
        assert names(result) == ["FROID LOGISTIQUE", "STOCKAGE NORMAND"]
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_configured_threshold(self, settings, service):
        settings.min_score_thresholds["destratification"] = 50
        result = await service.search(SearchCriteria(product="destratification", codes=["52.10"]))
        assert names(result) == ["FROID LOGISTIQUE"]
        assert result.results[0].scoring.threshold == 50

    @pytest.mark.asyncio
    async def test_pagination(self, service):
        result = await service.search(SearchCriteria(
            product="destratification", codes=["52.10"], limit=1, page=2,
        ))
        assert names(result) == ["STOCKAGE NORMAND"]
        assert result.total == 3
        assert (result.page, result.limit) == (2, 1)

    @pytest.mark.asyncio
    async def test_contacts_for_top_prospects_only(self, settings, service, orchestrator):
        settings.contact_enrich_limit = 2
        await service.search(SearchCriteria(
            product="destratification", codes=["52.10"], enrich_contacts=True,
        ))
        assert orchestrator.contacted == [SIRET_A, SIRET_B]


class TestPassesTechnicalFilters:
    """Filter evaluation on single profiles."""

    def test_heating_substring_any_source(self):
        profile = make_profile(energy_diagnostics=[
            EnergyDiagnostic(number="1", heating_energy="Gaz naturel"),
        ])
        assert passes_technical_filters(profile, SearchCriteria(heating_types=["gaz"]), "drop")
        assert not passes_technical_filters(profile, SearchCriteria(heating_types=["fioul"]), "keep")

    def test_energy_classes_case_insensitive(self):
        profile = make_profile(building=BuildingCharacteristics(energy_class="E"))
        assert passes_technical_filters(profile, SearchCriteria(energy_classes=["e", "f"]), "drop")
        assert not passes_technical_filters(profile, SearchCriteria(energy_classes=["A"]), "keep")

    def test_policy_applies_per_filter(self):
        profile = make_profile(building=BuildingCharacteristics(height=10.0))
        criteria = SearchCriteria(min_height=6, energy_classes=["E"])
        assert passes_technical_filters(profile, criteria, "keep")
        assert not passes_technical_filters(profile, criteria, "drop")

    def test_floor_area_from_diagnostic(self):
        profile = make_profile(energy_diagnostics=[EnergyDiagnostic(number="1", surface=1200.0)])
        assert passes_technical_filters(profile, SearchCriteria(min_floor_area=1000), "drop")


class TestOtherOperations:
    """Autocomplete, single enrichment and health."""

    @pytest.mark.asyncio
    async def test_suggest_needs_three_characters(self, service, recherche):
        assert await service.suggest("ab") == []
        assert recherche.calls == []

        suggestions = await service.suggest("froid")
        assert suggestions[0].siret == SIRET_A

    @pytest.mark.asyncio
    async def test_enrich_rejects_unknown_product(self, service):
        with pytest.raises(InputValidationError):
            await service.enrich_by_identifier(SIRET_A, product="chauffage")

    def test_health(self, service):
        health = service.health()
        assert health["status"] == "ok"
        assert health["enabled_sources"] == ["recherche"]
        assert health["cache"]["backend"] == "memory"
        assert health["rate_limits"] == {}


class TestDeduplication:
    """Collapsing candidates by establishment."""

    def test_later_duplicates_fill_gaps(self):
        first = make_record(siret=SIRET_A, code=None)
        second = make_record(siret=SIRET_A, code="52.10A")
        second.officers = ["Marie DURAND"]

        unique = deduplicate_records([first, second, make_record(siret=SIRET_B)])

        assert [r.identifier.siret for r in unique] == [SIRET_A, SIRET_B]
        assert unique[0].activity_code == "52.10A"
        assert unique[0].officers == ["Marie DURAND"]

    def test_records_without_identifier_are_skipped(self):
        anonymous = make_record()
        anonymous.identifier = Identifier(siren="")
        assert deduplicate_records([anonymous]) == []
