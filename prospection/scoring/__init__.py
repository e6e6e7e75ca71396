"""Scoring module for product eligibility."""

from .engine import ScoringEngine, score_profile, validate_product
from .cumac import estimate_cumac
from .rubric import is_pertinent_code, relevant_codes_for_product

__all__ = [
    "ScoringEngine",
    "score_profile",
    "validate_product",
    "estimate_cumac",
    "is_pertinent_code",
    "relevant_codes_for_product",
]
