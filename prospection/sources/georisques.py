"""Client for the Géorisques register of classified installations (ICPE)."""

import json
import logging
from typing import Optional

from ..exceptions import InputValidationError
from ..models import Coordinates, RegulatorySite
from .base import SourceAdapter, first_present, source_query, to_float

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3
PAGE_SIZE = 100

# First keyword hit wins, in this order
INDUSTRY_KEYWORDS = [
    ("Chaufferie/Combustion", ("combustion", "chaufferie", "chaudière")),
    ("Stockage/Logistique", ("stockage", "entrepôt")),
    ("Production/Fabrication", ("fabrication", "production")),
    ("Traitement/Transformation", ("traitement", "transformation")),
    ("Chimie", ("chimie", "chimique")),
    ("Métallurgie", ("métallurgie", "métaux")),
]
GENERAL_INDUSTRY = "Industrie générale"

INDUSTRY_BONUS = {
    "Chaufferie/Combustion": 30,
    "Métallurgie": 25,
    "Production/Fabrication": 20,
    "Chimie": 20,
    "Traitement/Transformation": 15,
}


def classify_industry(activities: list) -> str:
    """Industry family from the wording of a site's ICPE headings."""
    text = json.dumps(activities or [], ensure_ascii=False).lower()
    for label, keywords in INDUSTRY_KEYWORDS:
        if any(k in text for k in keywords):
            return label
    return GENERAL_INDUSTRY


def pertinence_score(industry_type: str, active: bool, regime: Optional[str],
                     seveso: Optional[str]) -> int:
    """How good a prospect a site is for insulation mattresses, 0-100."""
    score = 40
    score += INDUSTRY_BONUS.get(industry_type, 10)
    if active:
        score += 10
    if regime == "Autorisation":
        score += 5
    if seveso and seveso != "Non Seveso":
        score += 5
    return min(score, 100)


class GeorisquesAdapter(SourceAdapter):
    """
    Classified industrial sites by commune, around a point or by operator name.

    Usage:
        result = await georisques.by_coordinates(49.44, 1.09, radius=1000)
        best = result.value[0] if result.found else None
    """

    name = "georisques"

    async def _installations(self, method: str, key: tuple, params: dict) -> list[RegulatorySite]:
        params = {**params, "page_size": PAGE_SIZE}

        async def fetch():
            return await self._request("/installations_classees", params=params)

        data = await self._cached(method, key, fetch)
        if isinstance(data, dict):
            data = data.get("data") or []
        sites = [self._parse_site(item) for item in data or [] if isinstance(item, dict)]
        sites.sort(key=lambda s: (s.active, s.pertinence), reverse=True)
        return sites

    @source_query(list)
    async def by_commune(self, insee_code: str) -> list[RegulatorySite]:
        insee_code = (insee_code or "").strip().upper()
        if len(insee_code) != 5:
            raise InputValidationError(f"Invalid INSEE commune code {insee_code!r}")
        return await self._installations("commune", (insee_code,), {"code_insee": insee_code})

    @source_query(list)
    async def by_coordinates(self, lat: float, lon: float, radius: int = 1000) -> list[RegulatorySite]:
        """Sites within ``radius`` metres, active and most pertinent first."""
        # latlon is sent as "lon,lat"
        params = {"latlon": f"{lon},{lat}", "rayon": radius}
        return await self._installations("coords", (round(lat, 6), round(lon, 6), radius), params)

    @source_query(list)
    async def by_name(self, name: str, insee_code: Optional[str] = None) -> list[RegulatorySite]:
        name = (name or "").strip()
        if len(name) < MIN_NAME_LENGTH:
            raise InputValidationError(
                f"Operator name must be at least {MIN_NAME_LENGTH} characters"
            )
        params = {"nom_ets": name, "code_insee": insee_code}
        return await self._installations("name", (name.lower(), insee_code), params)

    def _parse_site(self, data: dict) -> RegulatorySite:
        headings = data.get("rubriques") or []
        activities = []
        for heading in headings:
            if isinstance(heading, dict):
                label = first_present(heading, "libelle", "nature")
                if label:
                    activities.append(str(label))

        state = first_present(data, "etat_activite", "etatActivite")
        active = state == "En activité"
        regime = data.get("regime")
        seveso = data.get("seveso") or data.get("statut_seveso")
        industry = classify_industry(headings)
        lat, lon = to_float(data.get("latitude")), to_float(data.get("longitude"))

        return RegulatorySite(
            site_id=str(first_present(data, "code_s3ic", "codeS3IC") or ""),
            name=first_present(data, "nom_ets", "nomEts", "raison_sociale") or "",
            regime=regime,
            active=active,
            seveso=seveso,
            activities=activities[:5],
            industry_type=industry,
            pertinence=pertinence_score(industry, active, regime, seveso),
            coordinates=Coordinates(lat, lon) if lat is not None and lon is not None else None,
            commune=data.get("commune"),
            raw=data,
        )
