"""Enrichment module fusing registry, address and building data."""

from .orchestrator import EnrichmentOrchestrator
from .fusion import fuse_buildings, select_primary
from .technical import completeness, recommend_products, technical_fields

__all__ = [
    "EnrichmentOrchestrator",
    "fuse_buildings",
    "select_primary",
    "completeness",
    "recommend_products",
    "technical_fields",
]
