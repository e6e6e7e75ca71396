"""Building blocks shared by the per-product rubrics."""

from typing import Any, Optional

from ..constants import PERTINENCE_ORDER, PERTINENT_NAF_PREFIXES, RELEVANT_CODES
from ..models import EnergyDiagnostic, EnrichedProfile, FactorContribution

MISSING_TIER = "absent"


def clamp_score(value: int) -> int:
    return max(0, min(100, value))


class Rubric:
    """
    Ordered collection of criterion contributions.

    Every criterion is recorded, including those scoring 0, so the
    breakdown explains the whole score.
    """

    def __init__(self):
        self.factors: list[FactorContribution] = []

    def add(self, criterion: str, raw_value: Any, points: int, tier: str, justification: str) -> None:
        self.factors.append(FactorContribution(
            criterion=criterion,
            raw_value=raw_value,
            points=max(points, 0),
            tier=tier,
            justification=justification,
        ))

    def missing(self, criterion: str, justification: str) -> None:
        """Record a criterion whose data is unknown: 0 points."""
        self.add(criterion, None, 0, MISSING_TIER, justification)

    @property
    def total(self) -> int:
        return clamp_score(sum(f.points for f in self.factors))


def is_pertinent_code(code: Optional[str], product: str) -> bool:
    """Whether an activity code falls under one of the product's target sectors."""
    if not code:
        return False
    code = code.strip().upper()
    # "4711F" and "47.11F" both match the "47.11" prefix
    if len(code) >= 4 and "." not in code and code[:4].isdigit():
        code = f"{code[:2]}.{code[2:]}"
    return any(code.startswith(prefix) for prefix in PERTINENT_NAF_PREFIXES.get(product, []))


def relevant_codes_for_product(product: str) -> list[dict]:
    """
    Targeting hints for a product, most pertinent first.

    Returns:
        List of dicts with ``code``, ``pertinence`` and ``reason``
    """
    entries = [
        {"code": code, "pertinence": pertinence, "reason": reason}
        for code, pertinence, reason in RELEVANT_CODES.get(product, [])
    ]
    entries.sort(key=lambda e: PERTINENCE_ORDER[e["pertinence"]], reverse=True)
    return entries


def contains_any(text: Optional[str], keywords: tuple) -> bool:
    text = (text or "").lower()
    return any(k in text for k in keywords)


# -- profile accessors ------------------------------------------------------

def _newest_diagnostic(profile: EnrichedProfile) -> Optional[EnergyDiagnostic]:
    return profile.energy_diagnostics[0] if profile.energy_diagnostics else None


def floor_area(profile: EnrichedProfile) -> Optional[float]:
    """Floor area, else footprint, else the surface of the newest diagnostic."""
    b = profile.building
    if b is not None:
        if b.floor_area is not None:
            return b.floor_area
        if b.footprint_area is not None:
            return b.footprint_area
    dpe = _newest_diagnostic(profile)
    return dpe.surface if dpe else None


def heating_energy(profile: EnrichedProfile) -> Optional[str]:
    b = profile.building
    if b is not None and (b.heating_type or b.heating_energy):
        return b.heating_type or b.heating_energy
    dpe = _newest_diagnostic(profile)
    return dpe.heating_energy if dpe else None


def heating_installation(profile: EnrichedProfile) -> Optional[str]:
    b = profile.building
    if b is not None and b.heating_installation:
        return b.heating_installation
    dpe = _newest_diagnostic(profile)
    return dpe.heating_installation if dpe else None
