"""Indicative CEE volume estimate."""

from typing import Optional

from ..constants import CUMAC_PER_M2, CUMAC_PER_M2_POOR_BUILDING
from ..models import CumacEstimate, EnrichedProfile
from .rubric import floor_area

POOR_CLASSES = ("E", "F", "G")


def estimate_cumac(profile: EnrichedProfile, product: str) -> Optional[CumacEstimate]:
    """
    Range of kWh cumac a retrofit could earn, from floor area and energy class.

    Returns:
        CumacEstimate, or None when the area or product is unknown
    """
    area = floor_area(profile)
    if not area or product not in CUMAC_PER_M2:
        return None

    low, high = CUMAC_PER_M2[product]
    if profile.energy_class in POOR_CLASSES:
        high = CUMAC_PER_M2_POOR_BUILDING.get(product, high)

    return CumacEstimate(
        min_kwh=round(area * low),
        max_kwh=round(area * high),
        surface=area,
        product=product,
    )
