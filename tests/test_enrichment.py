"""Tests for building fusion, technical fields and the enrichment orchestrator."""

import httpx
import pytest

from conftest import FakeSource, failed, make_profile, make_record, ok
from prospection.enrichment import (
    EnrichmentOrchestrator,
    completeness,
    fuse_buildings,
    recommend_products,
    select_primary,
    technical_fields,
)
from prospection.enrichment.orchestrator import IDENTITY_WARNING
from prospection.exceptions import InputValidationError
from prospection.models import (
    Address,
    BuildingCharacteristics,
    BuildingReference,
    ContactInfo,
    Coordinates,
    EnergyDiagnostic,
    RegulatorySite,
)
from prospection.naf import get_registry

HAVRE = Coordinates(lat=49.49, lon=0.12)
RNB_ID = "ABCD1234EFGH"


class TestFusion:
    """Merging building records."""

    def test_primary_is_most_complete(self):
        sparse = BuildingCharacteristics(building_id="a", height=9.0)
        rich = BuildingCharacteristics(building_id="b", floor_area=800.0, floors=2)
        assert select_primary([sparse, rich]) is rich

    def test_tie_goes_to_most_recent(self):
        old = BuildingCharacteristics(building_id="old", height=9.0, updated_at="2021-01-01")
        new = BuildingCharacteristics(building_id="new", height=8.0, updated_at="2024-05-01")
        assert select_primary([old, new]) is new

    def test_empty(self):
        assert select_primary([]) is None
        assert fuse_buildings([None]) is None

    def test_gaps_are_filled_from_other_records(self):
        bdnb = BuildingCharacteristics(
            building_id="bdnb-1", floor_area=2400.0, heating_type="Aérotherme gaz",
            energy_class="E", sources=["bdnb"],
        )
        bdtopo = BuildingCharacteristics(
            building_id="topo-1", height=9.0, coordinates=HAVRE, sources=["bdtopo"],
        )

        fused = fuse_buildings([bdtopo, bdnb])

        assert fused.building_id == "bdnb-1"
        assert fused.height == 9.0
        assert fused.floor_area == 2400.0
        assert fused.coordinates == HAVRE
        assert fused.sources == ["bdnb", "bdtopo"]

    def test_measurement_replaces_estimate(self):
        primary = BuildingCharacteristics(
            height=9.0, floors=3, floor_area=1200.0, estimated={"height", "floor_area"},
            sources=["bdtopo"],
        )
        measured = BuildingCharacteristics(height=11.5, sources=["bdnb"])

        fused = fuse_buildings([primary, measured])

        assert fused.height == 11.5
        assert fused.estimated == {"floor_area"}
        assert "bdnb" in fused.sources
        assert primary.estimated == {"height", "floor_area"}

    def test_estimate_never_replaces_measurement(self):
        primary = BuildingCharacteristics(height=9.0, floors=3, sources=["bdnb"])
        estimate = BuildingCharacteristics(height=12.0, estimated={"height"}, sources=["bdtopo"])

        fused = fuse_buildings([primary, estimate])

        assert fused.height == 9.0
        assert fused.estimated == set()
        assert fused.sources == ["bdnb"]

    def test_register_id_is_attached(self):
        building = BuildingCharacteristics(height=9.0, rnb_id="OLD000000000", sources=["bdtopo"])

        fused = fuse_buildings([building], rnb_id=RNB_ID)

        assert fused.rnb_id == RNB_ID
        assert fused.sources == ["bdtopo", "rnb"]


class TestTechnicalFields:
    """Product-specific extraction."""

    def test_destratification_from_building(self):
        building = BuildingCharacteristics(
            height=9.0, floor_area=2400.0, heating_type="Aérotherme gaz", floors=1,
        )
        fields = technical_fields(building, [], "destratification")
        assert fields == {
            "max_height": 9.0,
            "floor_area": 2400.0,
            "heating_type": "Aérotherme gaz",
            "floors": 1,
            "estimated_power_kw": 120,
        }

    def test_diagnostic_fills_gaps(self):
        diagnostic = EnergyDiagnostic(
            number="1", ceiling_height=3.2, surface=200.0, heating_energy="Gaz naturel",
        )
        fields = technical_fields(None, [diagnostic], "destratification")
        assert fields["max_height"] == 3.2
        assert fields["floor_area"] == 200.0
        assert fields["heating_type"] == "Gaz naturel"
        assert fields["estimated_power_kw"] == 10

    def test_matelas_insulation(self):
        building = BuildingCharacteristics(wall_insulation=4.0, energy_class="F")
        fields = technical_fields(building, [], "matelas_isolants")
        assert fields["insulation"] == {"walls": 4.0}
        assert fields["energy_class"] == "F"

    def test_no_product_no_fields(self):
        assert technical_fields(BuildingCharacteristics(height=9.0), [], None) == {}

    def test_recommendations(self):
        building = BuildingCharacteristics(height=9.0, floor_area=2400.0)
        products = [r.product for r in recommend_products(building, "G")]
        assert products == ["destratification", "pression", "matelas_isolants"]
        assert recommend_products(None, None) == []

    def test_completeness_weights(self):
        assert completeness(make_profile()) == 10
        full = make_profile(
            building=BuildingCharacteristics(height=9.0),
            code="52.10B",
            address=Address(city="Le Havre"),
            contact=ContactInfo(phone="0235000000", email="a@b.fr"),
            energy_diagnostics=[EnergyDiagnostic(number="1")],
            technical_fields={"max_height": 9.0},
        )
        assert completeness(full) == 100


def building_sources(**overrides):
    """Fake adapters describing a warehouse in Le Havre."""
    sources = {
        "sirene": FakeSource("sirene", is_configured=False),
        "recherche": FakeSource(
            "recherche-entreprises",
            by_identifier=ok("recherche-entreprises", make_record()),
        ),
        "ban": FakeSource("ban", geocode=ok("ban", Address(
            street_number="12", street_name="Rue des Docks", postal_code="76600",
            city="Le Havre", department="76", coordinates=HAVRE, normalized=True,
        ))),
        "bdnb": FakeSource("bdnb", by_coordinates=ok("bdnb", [BuildingCharacteristics(
            building_id="bdnb-1", floor_area=2400.0, heating_type="Aérotherme gaz",
            energy_class="E", sources=["bdnb"],
        )])),
        "bdtopo": FakeSource("bdtopo", by_coordinates=ok("bdtopo", [
            BuildingCharacteristics(building_id="nearest", height=6.0, rnb_id="OTHER0000000",
                                    sources=["bdtopo"]),
            BuildingCharacteristics(building_id="ours", height=9.0, floors=3, rnb_id=RNB_ID,
                                    sources=["bdtopo"]),
        ])),
        "rnb": FakeSource("rnb", by_coordinates=ok("rnb", [BuildingReference(RNB_ID)])),
        "dpe": FakeSource("dpe", by_identifier=ok("dpe", [
            EnergyDiagnostic(number="1", energy_class="E", consumption=320.0),
        ])),
        "georisques": FakeSource("georisques", by_coordinates=ok("georisques", [
            RegulatorySite(site_id="0002", name="CHAUFFERIE", active=True, pertinence=90),
        ])),
        "pappers": FakeSource("pappers", by_identifier=ok("pappers", ContactInfo(
            phone="0235000000", email="contact@entrepots-havre.fr",
        ))),
    }
    sources.update(overrides)
    return sources


def make_orchestrator(settings, cache, sources):
    return EnrichmentOrchestrator(settings, sources, cache, registry=get_registry())


class TestOrchestrator:
    """End-to-end enrichment over fake adapters."""

    @pytest.mark.asyncio
    async def test_full_enrichment(self, settings, cache):
        sources = building_sources()
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522", "destratification")

        assert profile.name == "ENTREPOTS DU HAVRE"
        assert profile.activity_label == "Entreposage et stockage non frigorifique"
        assert profile.address.coordinates == HAVRE
        assert not profile.partial
        assert profile.warnings == []
        assert profile.sources == [
            "recherche-entreprises", "ban", "rnb", "bdnb", "bdtopo", "dpe",
        ]

        building = profile.building
        assert building.height == 9.0
        assert building.floors == 3
        assert building.floor_area == 2400.0
        assert building.rnb_id == RNB_ID
        assert profile.energy_class == "E"

        assert profile.technical_fields["max_height"] == 9.0
        assert profile.technical_fields["estimated_power_kw"] == 120
        assert profile.completeness == 70
        assert {r.product for r in profile.recommendations} == {
            "destratification", "pression", "matelas_isolants",
        }
        assert sources["bdtopo"].called("by_coordinates")[0][1] == (49.49, 0.12)
        assert sources["georisques"].calls == []
        assert sources["pappers"].calls == []

    @pytest.mark.asyncio
    async def test_unknown_company_is_partial(self, settings, cache):
        sources = building_sources(
            recherche=FakeSource(
                "recherche-entreprises",
                by_identifier=failed("recherche-entreprises", "server error", empty=None),
            ),
            dpe=FakeSource("dpe", by_identifier=ok("dpe", [])),
        )
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522")

        assert profile.partial
        assert profile.warnings == [IDENTITY_WARNING]
        assert profile.name is None
        assert profile.building is None
        assert profile.identifier.siret == "55208131766522"
        assert sources["ban"].calls == []

    @pytest.mark.asyncio
    async def test_invalid_identifier(self, settings, cache):
        orchestrator = make_orchestrator(settings, cache, building_sources())
        with pytest.raises(InputValidationError):
            await orchestrator.enrich_by_identifier("not-a-siret")

    @pytest.mark.asyncio
    async def test_configured_sirene_takes_precedence(self, settings, cache):
        sirene_record = make_record(name="ENTREPOTS DU HAVRE SAS")
        sirene_record.source = "sirene"
        sources = building_sources(
            sirene=FakeSource("sirene", by_identifier=ok("sirene", sirene_record)),
        )
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522")

        assert profile.name == "ENTREPOTS DU HAVRE SAS"
        assert profile.sources[0] == "sirene"
        assert sources["recherche"].calls == []

    @pytest.mark.asyncio
    async def test_sirene_failure_covered_by_registry_search(self, settings, cache):
        sources = building_sources(
            sirene=FakeSource("sirene", by_identifier=failed("sirene", "timed out", empty=None)),
        )
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522")

        assert profile.name == "ENTREPOTS DU HAVRE"
        assert not profile.partial
        assert "sirene" not in profile.sources

    @pytest.mark.asyncio
    async def test_sirene_record_without_address_uses_registry_search(self, settings, cache):
        unit = make_record(name="ENTREPOTS DU HAVRE SAS")
        unit.address = Address()
        unit.source = "sirene"
        sources = building_sources(
            sirene=FakeSource("sirene", by_identifier=ok("sirene", unit)),
        )
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("552081317", "destratification")

        assert sources["recherche"].called("by_identifier")[0][1] == ("552081317",)
        assert profile.identifier.siret == "55208131766522"
        assert profile.address.postal_code == "76600"
        assert sources["ban"].calls
        assert profile.building.height == 9.0

    @pytest.mark.asyncio
    async def test_unreadable_token_does_not_break_enrichment(self, settings, cache, make_adapter):
        sirene = make_adapter(
            "sirene",
            lambda request: httpx.Response(200, text="<html>maintenance</html>"),
            client_id="id",
            client_secret="secret",
        )
        orchestrator = make_orchestrator(settings, cache, building_sources(sirene=sirene))

        profile = await orchestrator.enrich_by_identifier("55208131766522")

        assert profile.name == "ENTREPOTS DU HAVRE"
        assert profile.sources[0] == "recherche-entreprises"
        assert not profile.partial

    @pytest.mark.asyncio
    async def test_failed_building_source_keeps_other_data(self, settings, cache):
        sources = building_sources(
            bdnb=FakeSource("bdnb", by_coordinates=failed("bdnb", "bdnb server error: 503")),
        )
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522", "destratification")

        assert profile.partial
        assert profile.warnings == ["bdnb: bdnb server error: 503"]
        assert profile.building.height == 9.0
        assert profile.building.floor_area is None
        assert "bdnb" not in profile.sources

    @pytest.mark.asyncio
    async def test_bdnb_falls_back_to_address(self, settings, cache):
        by_address = ok("bdnb", [BuildingCharacteristics(floor_area=900.0, sources=["bdnb"])])
        bdnb = FakeSource("bdnb", by_coordinates=ok("bdnb", []), by_address=by_address)
        orchestrator = make_orchestrator(settings, cache, building_sources(bdnb=bdnb))

        profile = await orchestrator.enrich_by_identifier("55208131766522")

        assert len(bdnb.called("by_address")) == 1
        assert profile.building.floor_area == 900.0

    @pytest.mark.asyncio
    async def test_disabled_source_is_not_queried(self, settings, cache):
        settings.enabled_sources.discard("bdtopo")
        sources = building_sources()
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522")

        assert sources["bdtopo"].calls == []
        assert profile.building.height is None

    @pytest.mark.asyncio
    async def test_matelas_queries_regulatory_sites(self, settings, cache):
        sources = building_sources()
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522", "matelas_isolants")

        assert sources["georisques"].called("by_coordinates")[0][1] == (49.49, 0.12, 1000)
        assert profile.regulatory_sites[0].site_id == "0002"
        assert "georisques" in profile.sources

    @pytest.mark.asyncio
    async def test_contacts_need_enabled_paid_source(self, settings, cache):
        sources = building_sources()
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_by_identifier("55208131766522", enrich_contacts=True)
        assert sources["pappers"].calls == []
        assert profile.phone is None

        settings.enabled_sources.add("pappers")
        settings.sources["pappers"].api_key = "pk"
        profile = await orchestrator.enrich_by_identifier("55208131766522", enrich_contacts=True)

        assert sources["pappers"].called("by_identifier")[0][1] == ("552081317",)
        assert profile.phone == "0235000000"
        assert profile.email == "contact@entrepots-havre.fr"
        assert "pappers" in profile.sources

    @pytest.mark.asyncio
    async def test_enrich_record_skips_identity_lookup(self, settings, cache):
        sources = building_sources()
        orchestrator = make_orchestrator(settings, cache, sources)

        profile = await orchestrator.enrich_record(make_record(coordinates=HAVRE))

        assert sources["recherche"].calls == []
        assert profile.name == "ENTREPOTS DU HAVRE"
        assert profile.building is not None

    def test_profile_from_record(self, settings, cache):
        orchestrator = make_orchestrator(settings, cache, {})
        record = make_record()
        record.officers = ["Marie DURAND"]

        profile = orchestrator.profile_from_record(record)

        assert profile.address.department == "76"
        assert profile.contact.officers == ["Marie DURAND"]
        assert profile.sources == ["recherche-entreprises"]
        assert profile.completeness == 30

    @pytest.mark.asyncio
    async def test_clear_cache(self, settings, cache):
        await cache.set("ban:search:x", 1, 60)
        await cache.set("dpe:siret:y", 2, 60)
        orchestrator = make_orchestrator(settings, cache, {})

        assert await orchestrator.clear_cache("ban:*") == 1
        assert await cache.get("dpe:siret:y") == 2
