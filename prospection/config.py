"""Configuration settings for the prospection pipeline."""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .models import PRODUCT_TYPES

load_dotenv()

logger = logging.getLogger(__name__)

MISSING_DATA_POLICIES = ("keep", "drop")

DAY = 86400


@dataclass
class SourceSettings:
    """Endpoint, credentials, quota and cache lifetime for one source."""

    base_url: str
    rate_points: int = 10  # requests allowed per rate_duration
    rate_duration: float = 1.0  # seconds
    ttl: int = 3600  # cache lifetime in seconds
    api_key: str = ""
    client_id: str = ""
    client_secret: str = ""
    token_url: str = ""
    dataset: str = ""


def default_sources() -> dict[str, SourceSettings]:
    return {
        "recherche": SourceSettings(
            base_url="https://recherche-entreprises.api.gouv.fr",
            rate_points=10,
            ttl=1800,
        ),
        "sirene": SourceSettings(
            base_url="https://api.insee.fr/api-sirene/3.11",
            rate_points=30,
            ttl=DAY,
            token_url="https://api.insee.fr/token",
        ),
        "ban": SourceSettings(
            base_url="https://api-adresse.data.gouv.fr",
            rate_points=50,
            ttl=30 * DAY,
        ),
        "bdnb": SourceSettings(
            base_url="https://bdnb.io/api/v2",
            rate_points=10,
            ttl=7200,
        ),
        "bdtopo": SourceSettings(
            base_url="https://data.geopf.fr/wfs/ows",
            rate_points=10,
            ttl=90 * DAY,
            api_key="essentiels",
        ),
        "rnb": SourceSettings(
            base_url="https://rnb-api.beta.gouv.fr/api/alpha",
            rate_points=20,
            ttl=90 * DAY,
        ),
        "dpe": SourceSettings(
            base_url="https://data.ademe.fr/data-fair/api/v1/datasets",
            rate_points=10,
            ttl=7200,
            dataset="dpe-v2-logements-existants",
        ),
        "georisques": SourceSettings(
            base_url="https://www.georisques.gouv.fr/api/v1",
            rate_points=16,
            ttl=30 * DAY,
        ),
        "pappers": SourceSettings(
            base_url="https://api.pappers.fr/v2",
            rate_points=2,
            ttl=DAY,
        ),
    }


ALL_SOURCES = tuple(default_sources())


@dataclass
class Settings:
    """Unified settings with YAML and environment override support."""

    # Sources queried during enrichment; pappers is paid and opt-in
    enabled_sources: set = field(
        default_factory=lambda: {s for s in ALL_SOURCES if s != "pappers"}
    )

    # Minimum score per product for a prospect to count as eligible (0 = keep all)
    min_score_thresholds: dict = field(
        default_factory=lambda: {product: 0 for product in PRODUCT_TYPES}
    )

    # Enrichment
    max_enrich_concurrency: int = 5
    missing_data_policy: str = "keep"  # keep | drop candidates lacking a filtered field
    contact_enrich_limit: int = 50
    max_candidates: int = 100
    default_product: str = "destratification"

    # HTTP
    request_timeout: float = 12.0
    max_retries: int = 3
    retry_backoff: float = 0.5
    max_rate_wait: float = 5.0

    # Cache
    cache_backend: str = "memory"  # memory | redis
    redis_url: str = field(default_factory=lambda: os.environ.get("REDIS_URL", ""))

    sources: dict = field(default_factory=default_sources)

    def is_enabled(self, source: str) -> bool:
        if source not in self.enabled_sources:
            return False
        if source == "pappers":
            return bool(self.sources["pappers"].api_key)
        return True

    def threshold_for(self, product: str) -> int:
        return int(self.min_score_thresholds.get(product, 0))


def _apply_source_overrides(settings: Settings, data: dict) -> None:
    known = {f.name for f in fields(SourceSettings)}
    for name, values in (data or {}).items():
        if name not in settings.sources:
            logger.warning("Ignoring configuration for unknown source '%s'", name)
            continue
        updates = {k: v for k, v in (values or {}).items() if k in known}
        settings.sources[name] = replace(settings.sources[name], **updates)


def _apply_environment(settings: Settings) -> None:
    sources = settings.sources

    credentials = {
        ("sirene", "client_id"): "INSEE_CLIENT_ID",
        ("sirene", "client_secret"): "INSEE_CLIENT_SECRET",
        ("sirene", "api_key"): "INSEE_API_KEY",
        ("bdnb", "api_key"): "BDNB_API_KEY",
        ("bdtopo", "api_key"): "IGN_API_KEY",
        ("pappers", "api_key"): "PAPPERS_API_KEY",
    }
    for (source, attr), env_name in credentials.items():
        if os.environ.get(env_name):
            setattr(sources[source], attr, os.environ[env_name])

    if os.environ.get("REDIS_URL"):
        settings.redis_url = os.environ["REDIS_URL"]
        settings.cache_backend = "redis"
    if os.environ.get("CACHE_BACKEND"):
        settings.cache_backend = os.environ["CACHE_BACKEND"]

    if os.environ.get("PROSPECTION_ENABLED_SOURCES"):
        names = os.environ["PROSPECTION_ENABLED_SOURCES"].split(",")
        settings.enabled_sources = {n.strip() for n in names if n.strip()}

    for product in PRODUCT_TYPES:
        env_name = f"PROSPECTION_MIN_SCORE_{product.upper()}"
        if os.environ.get(env_name):
            settings.min_score_thresholds[product] = int(os.environ[env_name])


def load_config(path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML file with environment overrides.

    Priority: environment > config file > defaults

    Args:
        path: Path to YAML config file (optional)

    Returns:
        Settings instance with merged configuration
    """
    settings = Settings()

    if path:
        config_path = Path(path)
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

            _apply_source_overrides(settings, data.pop("sources", {}))

            for key, value in data.items():
                if not hasattr(settings, key):
                    logger.warning("Ignoring unknown setting '%s'", key)
                    continue
                if key == "enabled_sources":
                    value = set(value)
                elif key == "min_score_thresholds":
                    value = {**settings.min_score_thresholds, **value}
                setattr(settings, key, value)
        else:
            logger.warning("Config file not found: %s", path)

    _apply_environment(settings)

    if settings.missing_data_policy not in MISSING_DATA_POLICIES:
        raise ValueError(
            f"missing_data_policy must be one of {MISSING_DATA_POLICIES}, "
            f"got {settings.missing_data_policy!r}"
        )

    return settings
