"""Shared fixtures: in-memory cache, fake HTTP transport and canned sources."""

from dataclasses import replace
from typing import Optional

import httpx
import pytest

from prospection.cache import MemoryCacheStore
from prospection.config import Settings, default_sources
from prospection.models import (
    Address,
    BuildingCharacteristics,
    CompanyRecord,
    Coordinates,
    EnrichedProfile,
    Identifier,
    SourceResult,
)
from prospection.ratelimit import RateLimiter
from prospection.sources import ADAPTERS


class FakeSource:
    """Adapter stand-in returning canned SourceResults and recording calls.

    Each keyword argument maps a method name to either a SourceResult or a
    callable building one from the call arguments.
    """

    def __init__(self, name: str, is_configured: bool = True, **responses):
        self.name = name
        self.is_configured = is_configured
        self.responses = responses
        self.calls = []

    def __getattr__(self, method):
        responses = self.__dict__.get("responses", {})
        if method not in responses:
            raise AttributeError(method)

        async def call(*args, **kwargs):
            self.calls.append((method, args, kwargs))
            response = responses[method]
            return response(*args, **kwargs) if callable(response) else response

        return call

    def called(self, method: str) -> list:
        return [c for c in self.calls if c[0] == method]

    async def aclose(self):
        pass


def ok(source: str, value) -> SourceResult:
    return SourceResult(source, value)


def failed(source: str, error: str = "unavailable", empty=list) -> SourceResult:
    return SourceResult(source, empty() if empty else None, error=error)


def make_record(
    siret: str = "55208131766522",
    name: str = "ENTREPOTS DU HAVRE",
    code: Optional[str] = "52.10B",
    postal_code: str = "76600",
    city: str = "Le Havre",
    coordinates: Optional[Coordinates] = None,
) -> CompanyRecord:
    return CompanyRecord(
        identifier=Identifier(siren=siret[:9], siret=siret),
        name=name,
        address=Address(
            street_number="12",
            street_type="RUE",
            street_name="DES DOCKS",
            postal_code=postal_code,
            city=city,
            coordinates=coordinates,
        ),
        activity_code=code,
        active=True,
        source="recherche-entreprises",
    )


def make_profile(
    building: Optional[BuildingCharacteristics] = None,
    code: Optional[str] = None,
    **kwargs,
) -> EnrichedProfile:
    return EnrichedProfile(
        identifier=Identifier(siren="552081317", siret="55208131766522"),
        name="ENTREPOTS DU HAVRE",
        activity_code=code,
        building=building,
        **kwargs,
    )


def mock_client(handler) -> httpx.AsyncClient:
    """HTTP client answering every request with ``handler(request)``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def cache():
    return MemoryCacheStore()


@pytest.fixture
def limiter():
    return RateLimiter("test", points=1000, duration=1.0)


@pytest.fixture
def make_adapter(cache, limiter):
    """Build a real adapter for a settings key, served by a fake transport.

    Usage:
        adapter = make_adapter("ban", handler, api_key="k")
    """
    def factory(key: str, handler, max_retries: int = 2, **overrides):
        settings = replace(default_sources()[key], **overrides)
        return ADAPTERS[key](
            settings,
            cache,
            limiter,
            max_retries=max_retries,
            retry_backoff=0,
            client=mock_client(handler),
        )

    return factory


@pytest.fixture
def settings():
    return Settings()
