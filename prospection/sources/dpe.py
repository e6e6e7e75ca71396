"""Client for the ADEME energy-performance certificate (DPE) datasets."""

import logging
import re
from collections import Counter
from typing import Optional

from ..models import Address, EnergyDiagnostic
from ..validation import validate_postal_code, validate_siret
from .base import SourceAdapter, energy_class, first_present, source_query, to_float, to_int

logger = logging.getLogger(__name__)

STATS_TTL = 86400
STATS_SAMPLE_SIZE = 1000


class DpeAdapter(SourceAdapter):
    """
    Energy diagnostics by establishment, address or postal code.

    Results are always returned newest first.
    """

    name = "dpe"

    @property
    def dataset(self) -> str:
        return self.settings.dataset or "dpe-v2-logements-existants"

    async def _lines(self, method: str, key: tuple, query: str, size: int) -> dict:
        params = {"q": query, "q_mode": "simple", "size": size}

        async def fetch():
            return await self._request(f"/{self.dataset}/lines", params=params)

        return await self._cached(method, key, fetch) or {}

    @source_query(list)
    async def by_identifier(self, siret: str) -> list[EnergyDiagnostic]:
        """Diagnostics filed under an establishment SIRET."""
        siret = validate_siret(siret)
        data = await self._lines("siret", (siret,), f"N°_SIRET:{siret}", 20)
        return self._parse_lines(data)

    @source_query(list)
    async def by_postal_code(self, postal_code: str, limit: int = 20) -> list[EnergyDiagnostic]:
        postal_code = validate_postal_code(postal_code)
        data = await self._lines(
            "postcode", (postal_code, limit), f"Code_postal_(BAN):{postal_code}", limit
        )
        return self._parse_lines(data)

    @source_query(list)
    async def by_address(self, address: Address) -> list[EnergyDiagnostic]:
        """Diagnostics matching a street within a postal code or commune."""
        clauses = []
        if address.postal_code:
            clauses.append(f"Code_postal_(BAN):{address.postal_code}")
        elif address.city:
            clauses.append(f'Nom_commune_(Brut):"{address.city}"')
        else:
            return []
        if address.street:
            street = re.sub(r"[^\w\s]", " ", address.street).strip()
            clauses.append(f"Adresse_(BAN):*{street}*")

        query = " AND ".join(clauses)
        data = await self._lines("address", (query.lower(),), query, 20)
        return self._parse_lines(data)

    @source_query()
    async def stats_by_postal_code(self, postal_code: str) -> Optional[dict]:
        """
        Aggregate energy labels, consumption and heating energies for an area.

        Returns:
            Dict with ``total``, ``classes`` (label -> count), ``average_consumption``,
            ``average_surface``, ``average_year`` and ``heating_energies``
        """
        postal_code = validate_postal_code(postal_code)

        async def fetch():
            return await self._request(
                f"/{self.dataset}/lines",
                params={"q": f"Code_postal_(BAN):{postal_code}", "q_mode": "simple",
                        "size": STATS_SAMPLE_SIZE},
            )

        data = await self._cached("stats", (postal_code,), fetch, ttl=STATS_TTL) or {}
        diagnostics = self._parse_lines(data)
        if not diagnostics:
            return None

        def average(values: list) -> Optional[int]:
            values = [v for v in values if v is not None]
            return round(sum(values) / len(values)) if values else None

        return {
            "postal_code": postal_code,
            "total": len(diagnostics),
            "classes": dict(Counter(d.energy_class or "?" for d in diagnostics)),
            "average_consumption": average([d.consumption for d in diagnostics]),
            "average_surface": average([d.surface for d in diagnostics]),
            "average_year": average([d.construction_year for d in diagnostics]),
            "heating_energies": dict(Counter(d.heating_energy for d in diagnostics if d.heating_energy)),
        }

    def _parse_lines(self, data: dict) -> list[EnergyDiagnostic]:
        diagnostics = [self._parse_line(line) for line in (data or {}).get("results") or []]
        # ISO dates sort lexically; undated certificates go last
        diagnostics.sort(key=lambda d: d.issued_on or "", reverse=True)
        return diagnostics

    def _parse_line(self, line: dict) -> EnergyDiagnostic:
        return EnergyDiagnostic(
            number=str(first_present(line, "N°DPE", "numero_dpe") or ""),
            energy_class=energy_class(line.get("Etiquette_DPE")),
            ghg_class=energy_class(line.get("Etiquette_GES")),
            consumption=to_float(line.get("Conso_5_usages_é_finale")),
            surface=to_float(first_present(line, "Surface_habitable_logement", "Surface_utile")),
            building_type=line.get("Type_bâtiment"),
            construction_year=to_int(line.get("Année_construction")),
            heating_installation=line.get("Type_installation_chauffage"),
            heating_energy=line.get("Type_énergie_principale_chauffage"),
            ceiling_height=to_float(line.get("Hauteur_sous-plafond")),
            floors=to_int(line.get("Nombre_niveaux_logement")),
            address=line.get("Adresse_(BAN)"),
            postal_code=line.get("Code_postal_(BAN)"),
            issued_on=line.get("Date_établissement_DPE"),
            raw=line,
        )
