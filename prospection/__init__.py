"""
CEE Prospection - company search and qualification for energy-savings products.

Find companies by activity code and geography, enrich them with registry,
address, building and energy data, and score them for destratification,
pressure-balancing or insulation-mattress retrofits.

CLI Usage:
    prospection search -c 52.10 -r Normandie -p destratification
    prospection enrich 55210055400013 -f json
    prospection web  # Start the HTTP API

Library Usage:
    from prospection import search_prospects

    result = search_prospects(
        codes=["52.10"],
        region="Normandie",
        product="destratification",
        limit=20,
    )

    for prospect in result.results:
        print(f"{prospect.profile.name}: {prospect.scoring.score}")
"""

__version__ = "1.0.0"

# Semantic versioning
# MAJOR.MINOR.PATCH
VERSION_INFO = {
    "major": 1,
    "minor": 0,
    "patch": 0,
    "release": "stable",  # stable, beta, alpha
}


def get_version() -> str:
    """Get full version string."""
    version = f"{VERSION_INFO['major']}.{VERSION_INFO['minor']}.{VERSION_INFO['patch']}"
    if VERSION_INFO["release"] != "stable":
        version += f"-{VERSION_INFO['release']}"
    return version


from prospection.api import build_service, enrich_company, search_prospects
from prospection.models import SearchCriteria

__all__ = [
    "build_service",
    "search_prospects",
    "enrich_company",
    "SearchCriteria",
    "__version__",
    "get_version",
    "VERSION_INFO",
]
