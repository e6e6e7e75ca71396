"""Merging building records from several datasets into one."""

import logging
from dataclasses import replace
from typing import Optional

from ..models import BuildingCharacteristics

logger = logging.getLogger(__name__)


def _rank(building: BuildingCharacteristics) -> tuple:
    # ISO dates and vintages compare lexically
    return (building.field_count(), str(building.updated_at or ""))


def select_primary(buildings: list[BuildingCharacteristics]) -> Optional[BuildingCharacteristics]:
    """The most field-complete record, ties going to the most recently updated."""
    if not buildings:
        return None
    return max(buildings, key=_rank)


def fuse_buildings(
    buildings: list[BuildingCharacteristics],
    rnb_id: Optional[str] = None,
) -> Optional[BuildingCharacteristics]:
    """
    Combine candidate records describing the same building.

    The primary record wins every field it measured. Fields it lacks, or only
    estimated, are taken from the other records in rank order; an estimate
    never replaces a measurement.

    Args:
        buildings: One record per dataset, any order
        rnb_id: National building id to attach when known

    Returns:
        Fused record listing every contributing source, or None
    """
    buildings = [b for b in buildings if b is not None]
    primary = select_primary(buildings)
    if primary is None:
        return None

    fused = replace(primary, estimated=set(primary.estimated), sources=list(primary.sources))
    others = sorted((b for b in buildings if b is not primary), key=_rank, reverse=True)

    for other in others:
        contributed = False
        for name in BuildingCharacteristics.MEASURE_FIELDS:
            value = getattr(other, name)
            if value is None:
                continue
            current = getattr(fused, name)
            other_estimated = other.is_estimated(name)
            if current is None or (fused.is_estimated(name) and not other_estimated):
                setattr(fused, name, value)
                if other_estimated:
                    fused.estimated.add(name)
                else:
                    fused.estimated.discard(name)
                contributed = True

        if fused.coordinates is None and other.coordinates is not None:
            fused.coordinates = other.coordinates
        if fused.rnb_id is None and other.rnb_id:
            fused.rnb_id = other.rnb_id
        if contributed:
            for source in other.sources:
                if source not in fused.sources:
                    fused.sources.append(source)

    if rnb_id:
        if fused.rnb_id and fused.rnb_id != rnb_id:
            logger.debug("Building id %s replaced by register id %s", fused.rnb_id, rnb_id)
        fused.rnb_id = rnb_id
        if "rnb" not in fused.sources:
            fused.sources.append("rnb")

    return fused
