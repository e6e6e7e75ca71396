"""Scoring engine dispatching profiles to the per-product rubrics."""

import logging
from typing import Callable, Optional

from ..exceptions import InputValidationError
from ..models import PRODUCT_TYPES, EnrichedProfile, ScoringResult
from .cumac import estimate_cumac
from .destratification import score_destratification
from .matelas import score_matelas
from .pression import score_pression
from .rubric import Rubric

logger = logging.getLogger(__name__)

RUBRICS: dict[str, Callable[[EnrichedProfile], Rubric]] = {
    "destratification": score_destratification,
    "pression": score_pression,
    "matelas_isolants": score_matelas,
}


def validate_product(product: Optional[str]) -> str:
    if product not in RUBRICS:
        raise InputValidationError(
            f"Unknown product type {product!r}: expected one of {', '.join(PRODUCT_TYPES)}"
        )
    return product


def score_profile(profile: EnrichedProfile, product: str, threshold: int = 0) -> ScoringResult:
    """
    Score one profile for one product.

    Args:
        profile: Enriched profile; missing data scores 0 for its criterion
        product: destratification | pression | matelas_isolants
        threshold: Minimum score to be eligible (0 keeps everything)

    Returns:
        ScoringResult with the per-criterion breakdown in evaluation order
    """
    rubric = RUBRICS[validate_product(product)](profile)
    score = rubric.total
    return ScoringResult(
        product=product,
        score=score,
        eligible=score >= threshold,
        threshold=threshold,
        factors=rubric.factors,
        cumac=estimate_cumac(profile, product),
    )


class ScoringEngine:
    """
    Stateless scorer holding the per-product eligibility thresholds.

    Usage:
        engine = ScoringEngine({"destratification": 40})
        result = engine.score(profile, "destratification")
        print(result.score, result.eligible, result.justifications)
    """

    def __init__(self, thresholds: Optional[dict] = None):
        self.thresholds = {product: 0 for product in PRODUCT_TYPES}
        self.thresholds.update(thresholds or {})

    def score(self, profile: EnrichedProfile, product: str, threshold: Optional[int] = None) -> ScoringResult:
        if threshold is None:
            threshold = int(self.thresholds.get(product, 0))
        return score_profile(profile, product, threshold)

    def score_all(self, profile: EnrichedProfile) -> dict[str, ScoringResult]:
        """One result per product."""
        return {product: self.score(profile, product) for product in PRODUCT_TYPES}

    @staticmethod
    def best_product(results: dict[str, ScoringResult]) -> Optional[str]:
        """Highest-scoring eligible product, or None when none scores above 0."""
        best, best_score = None, 0
        for product, result in results.items():
            if result.eligible and result.score > best_score:
                best, best_score = product, result.score
        return best
