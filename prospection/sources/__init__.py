"""External registry and dataset adapters."""

from .base import SourceAdapter, source_query
from .recherche import RechercheEntreprisesAdapter
from .sirene import SireneAdapter
from .ban import BanAdapter, is_low_confidence
from .bdnb import BdnbAdapter
from .bdtopo import BdTopoAdapter
from .rnb import RnbAdapter
from .dpe import DpeAdapter
from .georisques import GeorisquesAdapter, classify_industry, pertinence_score
from .pappers import PappersAdapter

# Settings key -> adapter class
ADAPTERS = {
    "recherche": RechercheEntreprisesAdapter,
    "sirene": SireneAdapter,
    "ban": BanAdapter,
    "bdnb": BdnbAdapter,
    "bdtopo": BdTopoAdapter,
    "rnb": RnbAdapter,
    "dpe": DpeAdapter,
    "georisques": GeorisquesAdapter,
    "pappers": PappersAdapter,
}

__all__ = [
    "ADAPTERS",
    "SourceAdapter",
    "source_query",
    "RechercheEntreprisesAdapter",
    "SireneAdapter",
    "BanAdapter",
    "is_low_confidence",
    "BdnbAdapter",
    "BdTopoAdapter",
    "RnbAdapter",
    "DpeAdapter",
    "GeorisquesAdapter",
    "classify_industry",
    "pertinence_score",
    "PappersAdapter",
]
