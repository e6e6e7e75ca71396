"""Deduplication of registry candidates gathered across several queries."""

import logging
from typing import Iterable, Optional

from .models import CompanyRecord

logger = logging.getLogger(__name__)


def record_key(record: CompanyRecord) -> Optional[str]:
    """
    Establishment identifier used as the deduplication key.

    Records without a SIRET fall back on their SIREN, so two head-office-less
    entries of the same company still collapse into one.
    """
    ident = record.identifier
    return ident.siret or ident.siren or None


def merge_into(target: CompanyRecord, other: CompanyRecord) -> CompanyRecord:
    """Fill fields missing from ``target`` with those of ``other``."""
    for name in ("name", "activity_code", "activity_label", "active", "category", "created_on"):
        if getattr(target, name) is None and getattr(other, name) is not None:
            setattr(target, name, getattr(other, name))
    if target.address.is_empty() and not other.address.is_empty():
        target.address = other.address
    elif target.address.coordinates is None and other.address.coordinates is not None:
        target.address.coordinates = other.address.coordinates
    for officer in other.officers:
        if officer not in target.officers:
            target.officers.append(officer)
    return target


def deduplicate_records(records: Iterable[CompanyRecord]) -> list[CompanyRecord]:
    """
    Collapse records sharing an establishment identifier, keeping first-seen order.

    Args:
        records: Candidates from one or more registry queries

    Returns:
        Unique records; later duplicates only fill gaps in the first one
    """
    by_key: dict[str, CompanyRecord] = {}
    total = 0
    for record in records:
        total += 1
        key = record_key(record)
        if key is None:
            logger.debug("Skipping record without identifier: %s", record.name)
            continue
        if key in by_key:
            merge_into(by_key[key], record)
        else:
            by_key[key] = record

    result = list(by_key.values())
    logger.info("Deduplicated %d candidates down to %d unique establishments", total, len(result))
    return result
