"""Tests for the FastAPI application."""

import pytest
from fastapi.testclient import TestClient

from conftest import make_profile
from prospection import __version__
from prospection.exceptions import InputValidationError
from prospection.models import (
    BuildingCharacteristics,
    ProspectionResult,
    RankedProspect,
    Suggestion,
)
from prospection.naf import get_registry
from prospection.scoring import score_profile
from prospection.validation import parse_identifier
from prospection.web import create_app


class StubService:
    """Search service stand-in returning canned results."""

    def __init__(self):
        self.registry = get_registry()
        self.criteria = []
        self.enrich_calls = []

    async def search(self, criteria):
        self.criteria.append(criteria)
        if criteria.region == "Atlantide":
            raise InputValidationError("Unknown region 'Atlantide'")
        profile = make_profile(
            building=BuildingCharacteristics(height=9.0, floor_area=2500.0), code="52.10B",
        )
        product = criteria.product or "destratification"
        return ProspectionResult(
            results=[RankedProspect(profile, score_profile(profile, product))],
            total=1,
            criteria=criteria.to_dict(),
            sources={"recherche-entreprises", "bdnb"},
            page=criteria.page,
            limit=criteria.limit,
        )

    async def suggest(self, partial, limit=10):
        if len(partial) < 3:
            return []
        return [Suggestion(siret="55208131766522", siren="552081317", name="ENTREPOTS DU HAVRE",
                           postal_code="76600", city="Le Havre")]

    async def enrich_by_identifier(self, identifier, product=None, enrich_contacts=False):
        self.enrich_calls.append((identifier, product, enrich_contacts))
        parse_identifier(identifier)
        return make_profile(partial=True, warnings=["registry unavailable"])

    async def clear_cache(self, pattern="*"):
        return 3

    def health(self):
        return {
            "status": "ok",
            "cache": {"backend": "memory", "hits": 2, "misses": 5},
            "rate_limits": {"ban": {"throttled": 0}},
            "enabled_sources": ["ban", "recherche"],
        }

    async def aclose(self):
        pass


@pytest.fixture
def service():
    return StubService()


@pytest.fixture
def client(service):
    return TestClient(create_app(service=service))


class TestProspectionEndpoints:
    """Search, export and autocomplete."""

    def test_search(self, client, service):
        response = client.post("/api/v1/prospection/search", json={
            "product": "destratification", "codes": ["52.10"], "region": "Normandie",
            "min_height": 6, "missing_data_policy": "drop",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["sources"] == ["bdnb", "recherche-entreprises"]
        assert data["results"][0]["scoring"]["score"] == 75
        assert data["results"][0]["profile"]["building"]["height"] == 9.0

        criteria = service.criteria[0]
        assert criteria.codes == ["52.10"]
        assert criteria.min_height == 6
        assert criteria.missing_data_policy == "drop"

    def test_invalid_criteria_is_400(self, client):
        response = client.post("/api/v1/prospection/search", json={"region": "Atlantide"})
        assert response.status_code == 400
        assert "Atlantide" in response.json()["detail"]

    @pytest.mark.parametrize("payload", [
        {"codes": ["52"], "limit": 500},
        {"codes": ["52"], "min_score": 120},
        {"codes": ["52"], "missing_data_policy": "maybe"},
    ])
    def test_out_of_range_is_422(self, client, payload):
        assert client.post("/api/v1/prospection/search", json=payload).status_code == 422

    def test_export_csv(self, client):
        response = client.post("/api/v1/prospection/export", json={"codes": ["52.10"]})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "prospects.csv" in response.headers["content-disposition"]
        lines = response.text.lstrip("\ufeff").splitlines()
        assert lines[0].startswith("siret;siren;name;")
        assert len(lines) == 2

    def test_suggest(self, client):
        response = client.get("/api/v1/prospection/suggest", params={"q": "entrepots"})

        assert response.status_code == 200
        assert response.json()[0]["label"] == "ENTREPOTS DU HAVRE - 76600 Le Havre"

    def test_suggest_short_query(self, client):
        assert client.get("/api/v1/prospection/suggest", params={"q": "en"}).json() == []


class TestEnrichmentEndpoints:
    """Single-company enrichment and cache control."""

    def test_enrich(self, client, service):
        response = client.get(
            "/api/v1/enrichment/55208131766522",
            params={"product": "pression", "contacts": "true"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["partial"] is True
        assert data["warnings"] == ["registry unavailable"]
        assert service.enrich_calls == [("55208131766522", "pression", True)]

    def test_invalid_identifier_is_400(self, client):
        response = client.get("/api/v1/enrichment/12345")
        assert response.status_code == 400
        assert "SIREN" in response.json()["detail"]

    def test_clear_cache(self, client):
        response = client.delete("/api/v1/enrichment/cache", params={"pattern": "bdnb:*"})
        assert response.json() == {"pattern": "bdnb:*", "deleted": 3}


class TestNafEndpoints:
    """Activity code lookups."""

    def test_expand(self, client):
        data = client.get("/api/v1/naf/expand/52.10").json()
        assert [c["code"] for c in data["expanded"]] == ["52.10A", "52.10B"]
        assert data["expanded"][0]["label"] == "Entreposage et stockage frigorifique"

    def test_search(self, client):
        data = client.get("/api/v1/naf/search", params={"q": "entreposage"}).json()
        assert "52.10A" in [c["code"] for c in data]

    def test_search_requires_two_characters(self, client):
        assert client.get("/api/v1/naf/search", params={"q": "e"}).status_code == 422

    def test_product_codes(self, client):
        data = client.get("/api/v1/naf/product/pression").json()
        assert data["codes"][0]["pertinence"] == "très haute"
        assert "86.10Z" in [c["code"] for c in data["registry_codes"]]

    def test_unknown_product_is_400(self, client):
        assert client.get("/api/v1/naf/product/chauffage").status_code == 400


class TestHealth:
    """Service status."""

    def test_health(self, client):
        data = client.get("/api/v1/health").json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        assert data["cache"]["backend"] == "memory"
        assert data["enabled_sources"] == ["ban", "recherche"]
