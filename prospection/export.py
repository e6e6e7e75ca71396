"""Export functionality for ranked prospects (CSV, JSON)."""

import csv
import io
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union

from .models import EnrichedProfile, ProspectionResult, RankedProspect
from .scoring.matelas import best_site
from .scoring.rubric import floor_area, heating_energy

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "siret",
    "siren",
    "name",
    "address",
    "postal_code",
    "city",
    "department",
    "region",
    "activity_code",
    "activity_label",
    "phone",
    "email",
    "active",
    "product",
    "score",
    "eligible",
    "height",
    "floor_area",
    "floors",
    "energy_class",
    "heating",
    "insulation",
    "regulatory_site",
    "industry_type",
    "justification",
    "cumac_min",
    "cumac_max",
    "sources",
    "enriched_at",
]


def _yes_no(value: Optional[bool]) -> str:
    if value is None:
        return ""
    return "Oui" if value else "Non"


def _insulation(profile: EnrichedProfile) -> str:
    building = profile.building
    if building is None:
        return ""
    parts = []
    if building.wall_insulation is not None:
        parts.append(f"murs {building.wall_insulation:g} cm")
    if building.roof_insulation is not None:
        parts.append(f"toiture {building.roof_insulation:g} cm")
    return ", ".join(parts)


def _plain(value):
    """JSON-friendly copy of dataclass output, without provider payloads."""
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items() if k != "raw"}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, set):
        return sorted(_plain(v) for v in value)
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    return value


def profile_to_dict(profile: EnrichedProfile) -> dict:
    """Convert a profile to a dictionary for JSON serialization."""
    data = _plain(asdict(profile))
    data["energy_class"] = profile.energy_class
    return data


def result_to_dict(result: ProspectionResult) -> dict:
    """Convert a search result page to a dictionary for JSON serialization."""
    return {
        "results": [
            {"profile": profile_to_dict(p.profile), "scoring": _plain(asdict(p.scoring))}
            for p in result.results
        ],
        "total": result.total,
        "page": result.page,
        "limit": result.limit,
        "criteria": _plain(result.criteria),
        "sources": sorted(result.sources),
    }


def prospect_to_row(prospect: RankedProspect) -> dict:
    """Flatten one ranked prospect into an export row."""
    profile, scoring = prospect.profile, prospect.scoring
    address, building = profile.address, profile.building
    site = best_site(profile.regulatory_sites)

    return {
        "siret": profile.identifier.siret or "",
        "siren": profile.identifier.siren,
        "name": profile.name or "",
        "address": address.street or address.full,
        "postal_code": address.postal_code or "",
        "city": address.city or "",
        "department": address.department or "",
        "region": address.region or "",
        "activity_code": profile.activity_code or "",
        "activity_label": profile.activity_label or "",
        "phone": profile.phone or "",
        "email": profile.email or "",
        "active": _yes_no(profile.active),
        "product": scoring.product,
        "score": scoring.score,
        "eligible": _yes_no(scoring.eligible),
        "height": building.height if building and building.height is not None else "",
        "floor_area": floor_area(profile) or "",
        "floors": building.floors if building and building.floors is not None else "",
        "energy_class": profile.energy_class or "",
        "heating": heating_energy(profile) or "",
        "insulation": _insulation(profile),
        "regulatory_site": site.name if site else "",
        "industry_type": site.industry_type if site else "",
        "justification": " | ".join(f.justification for f in scoring.factors if f.points > 0),
        "cumac_min": scoring.cumac.min_kwh if scoring.cumac else "",
        "cumac_max": scoring.cumac.max_kwh if scoring.cumac else "",
        "sources": ", ".join(profile.sources),
        "enriched_at": profile.enriched_at.isoformat(timespec="seconds"),
    }


def format_for_export(
    results: Union[ProspectionResult, Iterable[RankedProspect]],
) -> list[dict]:
    """
    Flatten search results into tabular rows.

    Args:
        results: A ProspectionResult or any iterable of ranked prospects

    Returns:
        One dict per prospect keyed by EXPORT_COLUMNS
    """
    if isinstance(results, ProspectionResult):
        results = results.results
    return [prospect_to_row(p) for p in results]


def _write_csv(rows: list[dict], f) -> None:
    writer = csv.DictWriter(f, fieldnames=EXPORT_COLUMNS, delimiter=";", extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)


def export_to_csv(rows: list[dict], output_path: str) -> str:
    """
    Export rows to a semicolon-separated CSV file.

    The UTF-8 BOM lets spreadsheet software detect the encoding of accented
    company names.

    Returns:
        Path to the created file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8-sig") as f:
        _write_csv(rows, f)

    logger.info("Exported %d prospects to %s", len(rows), output_path)
    return str(output_path)


def export_csv_string(rows: list[dict]) -> str:
    """CSV content as a string, BOM included (for web download)."""
    output = io.StringIO()
    output.write("\ufeff")
    _write_csv(rows, output)
    return output.getvalue()


def export_to_json(rows: list[dict], output_path: str, pretty: bool = True) -> str:
    """
    Export rows to a JSON file.

    Returns:
        Path to the created file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "exported_at": datetime.now().isoformat(),
        "total_prospects": len(rows),
        "prospects": rows,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        if pretty:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)
        else:
            json.dump(data, f, ensure_ascii=False, default=str)

    logger.info("Exported %d prospects to %s", len(rows), output_path)
    return str(output_path)


def export_rows(rows: list[dict], output_path: str, format: str = "csv") -> str:
    """Export rows in the given format ("csv" or "json")."""
    if format.lower() == "json":
        return export_to_json(rows, output_path)
    return export_to_csv(rows, output_path)
