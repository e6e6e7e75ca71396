"""
Client for the Recherche d'entreprises API (api.gouv.fr).

Free and unauthenticated. Results are paginated at 25 per page, so larger
limits take several calls.
"""

import logging
from typing import Optional

from ..models import Address, CompanyRecord, Coordinates, Identifier, Suggestion
from ..validation import parse_identifier
from .base import SourceAdapter, first_present, source_query, to_float

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 25
MIN_QUERY_LENGTH = 3
MAX_PAGES = 20


class RechercheEntreprisesAdapter(SourceAdapter):
    """
    Free-text and filtered search over the national company registry.

    Usage:
        result = await recherche.search(code="52.10A", region="28", limit=50)
        for record in result.value:
            print(record.identifier.siret, record.name)
    """

    name = "recherche-entreprises"

    @source_query(list)
    async def search(
        self,
        query: Optional[str] = None,
        code: Optional[str] = None,
        region: Optional[str] = None,
        department: Optional[str] = None,
        postal_code: Optional[str] = None,
        limit: int = MAX_PER_PAGE,
    ) -> list[CompanyRecord]:
        """
        Search companies, following pagination until ``limit`` records.

        A structured filter (code or geography) lifts the minimum query length;
        without one, queries shorter than 3 characters return nothing.

        Returns:
            Establishment records, in API relevance order
        """
        query = (query or "").strip()
        has_filters = bool(code or region or department or postal_code)
        if not has_filters and len(query) < MIN_QUERY_LENGTH:
            logger.debug("Registry search skipped: query %r too short without filters", query)
            return []

        params = {
            "q": query or None,
            "activite_principale": code,
            "region": region,
            "departement": department,
            "code_postal": postal_code,
            "per_page": min(limit, MAX_PER_PAGE),
        }

        records: list[CompanyRecord] = []
        page = 1
        while len(records) < limit and page <= MAX_PAGES:
            data = await self._fetch_page(params, page)
            if not data:
                break
            for item in data.get("results") or []:
                records.extend(self._parse_result(item))

            total_pages = data.get("total_pages") or 1
            if page >= total_pages:
                break
            page += 1

        logger.info("Registry search %s: %d records", _describe(params), len(records))
        return records[:limit]

    async def _fetch_page(self, params: dict, page: int) -> Optional[dict]:
        page_params = {**params, "page": page}

        async def fetch():
            return await self._request("/search", params=page_params)

        key_args = tuple(f"{k}={v}" for k, v in sorted(page_params.items()) if v is not None)
        return await self._cached("search", key_args, fetch)

    @source_query()
    async def by_identifier(self, identifier: str) -> Optional[CompanyRecord]:
        """Registry entry for a SIRET (that establishment) or SIREN (head office)."""
        ident = parse_identifier(identifier)
        data = await self._fetch_page({"q": ident.value, "per_page": 1}, 1)
        for item in (data or {}).get("results") or []:
            if item.get("siren") != ident.siren:
                continue
            for record in self._parse_result(item, include_siege=True):
                if ident.siret is None or record.identifier.siret == ident.siret:
                    return record
        return None

    @source_query(list)
    async def suggest(self, partial: str, limit: int = 10) -> list[Suggestion]:
        """Autocomplete candidates for a name or identifier fragment."""
        partial = (partial or "").strip()
        if len(partial) < MIN_QUERY_LENGTH:
            return []
        data = await self._fetch_page({"q": partial, "per_page": min(limit, MAX_PER_PAGE)}, 1)
        suggestions = []
        for item in (data or {}).get("results") or []:
            siege = item.get("siege") or {}
            suggestions.append(Suggestion(
                siret=siege.get("siret"),
                siren=item.get("siren", ""),
                name=_company_name(item),
                address=first_present(siege, "geo_adresse", "adresse") or "",
                postal_code=siege.get("code_postal"),
                city=siege.get("libelle_commune"),
                activity_code=item.get("activite_principale"),
            ))
        return suggestions[:limit]

    def _parse_result(self, item: dict, include_siege: bool = False) -> list[CompanyRecord]:
        """
        One record per matching establishment, falling back on the head office.

        The API attaches the establishments that satisfied the filters under
        ``matching_etablissements``; their address is the one to prospect.
        """
        siege = item.get("siege") or {}
        establishments = list(item.get("matching_etablissements") or [])
        if include_siege or not establishments:
            if not any(e.get("siret") == siege.get("siret") for e in establishments):
                establishments.append({**siege, "_siege": True})

        records = []
        for etab in establishments:
            siret = etab.get("siret")
            if not siret:
                continue
            state = etab.get("etat_administratif") or item.get("etat_administratif")
            records.append(CompanyRecord(
                identifier=Identifier(siren=item.get("siren") or siret[:9], siret=siret),
                name=_company_name(item),
                address=_parse_address(etab),
                activity_code=etab.get("activite_principale") or item.get("activite_principale"),
                activity_label=item.get("libelle_activite_principale"),
                active=state == "A" if state else None,
                category=item.get("categorie_entreprise"),
                created_on=item.get("date_creation"),
                updated_at=item.get("date_mise_a_jour"),
                officers=[_officer_name(d) for d in item.get("dirigeants") or [] if _officer_name(d)],
                source=self.name,
                raw=item,
            ))
        return records


def _company_name(item: dict) -> str:
    return first_present(item, "nom_complet", "nom_raison_sociale") or ""


def _officer_name(officer: dict) -> str:
    if officer.get("denomination"):
        return officer["denomination"]
    return " ".join(p for p in (officer.get("prenoms"), officer.get("nom")) if p)


def _parse_address(etab: dict) -> Address:
    lat, lon = to_float(etab.get("latitude")), to_float(etab.get("longitude"))
    return Address(
        street_number=etab.get("numero_voie"),
        street_type=etab.get("type_voie"),
        street_name=etab.get("libelle_voie"),
        postal_code=etab.get("code_postal"),
        city=etab.get("libelle_commune"),
        label=first_present(etab, "geo_adresse", "adresse"),
        insee_code=etab.get("commune"),
        department=etab.get("departement"),
        region=etab.get("region"),
        coordinates=Coordinates(lat, lon) if lat is not None and lon is not None else None,
    )


def _describe(params: dict) -> str:
    return ", ".join(f"{k}={v}" for k, v in params.items() if v and k != "per_page")
