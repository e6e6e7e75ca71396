"""Client for the Base de Données Nationale des Bâtiments (bdnb.io)."""

import logging
from typing import Optional

from ..models import Address, BuildingCharacteristics, Coordinates
from .base import SourceAdapter, energy_class, first_present, source_query, to_float, to_int

logger = logging.getLogger(__name__)

DETAIL_TTL = 86400


class BdnbAdapter(SourceAdapter):
    """
    Building characteristics keyed by address, coordinates or BDNB id.

    Anonymous access works with a reduced field set; a key is sent as a
    bearer token when configured.
    """

    name = "bdnb"

    async def _headers(self) -> dict:
        if self.settings.api_key:
            return {"Authorization": f"Bearer {self.settings.api_key}"}
        return {}

    @source_query(list)
    async def by_address(self, address: Address) -> list[BuildingCharacteristics]:
        """Buildings matching a postal address."""
        text = address.full
        if not text:
            return []
        params = {"address": text, "limit": 10}

        async def fetch():
            return await self._request("/buildings", params=params)

        data = await self._cached("address", (text.lower(),), fetch)
        return self._parse_list(data)

    @source_query(list)
    async def by_coordinates(
        self, lat: float, lon: float, radius: int = 100
    ) -> list[BuildingCharacteristics]:
        """Buildings within ``radius`` metres of a point."""
        params = {"lat": lat, "lng": lon, "radius": radius, "limit": 10}

        async def fetch():
            return await self._request("/buildings", params=params)

        data = await self._cached("coords", (round(lat, 6), round(lon, 6), radius), fetch)
        return self._parse_list(data)

    @source_query()
    async def by_identifier(self, building_id: str) -> Optional[BuildingCharacteristics]:
        async def fetch():
            return await self._request(f"/buildings/{building_id}")

        data = await self._cached("building", (building_id,), fetch, ttl=DETAIL_TTL)
        return self._parse_building(data) if data else None

    def _parse_list(self, data) -> list[BuildingCharacteristics]:
        if isinstance(data, dict):
            data = data.get("results") or data.get("data") or []
        if not isinstance(data, list):
            return []
        return [self._parse_building(item) for item in data if isinstance(item, dict)]

    def _parse_building(self, data: dict) -> BuildingCharacteristics:
        lat = to_float(first_present(data, "latitude", "lat"))
        lon = to_float(first_present(data, "longitude", "lng"))
        district = data.get("est_raccorde_reseau_chaleur")

        return BuildingCharacteristics(
            building_id=first_present(data, "batiment_groupe_id", "id"),
            height=to_float(first_present(data, "hauteur", "hauteur_mean")),
            floors=to_int(first_present(data, "nb_niveau", "nombre_niveaux")),
            floor_area=to_float(data.get("surface_plancher")),
            footprint_area=to_float(data.get("surface_emprise_sol")),
            wall_insulation=to_float(data.get("epaisseur_isolation_murs_exterieurs")),
            roof_insulation=to_float(data.get("epaisseur_isolation_toiture")),
            heating_type=first_present(data, "type_generateur_chauffage", "type_chauffage"),
            heating_installation=data.get("type_installation_chauffage"),
            heating_energy=data.get("type_energie_chauffage"),
            district_heating=(district in (True, "oui")) if district is not None else None,
            energy_class=energy_class(first_present(data, "classe_dpe_median", "etiquette_dpe")),
            consumption=to_float(data.get("conso_energie_finale_estimee")),
            dwellings=to_int(data.get("nb_logement")),
            construction_year=to_int(data.get("annee_construction")),
            usage=first_present(data, "type_usage", "usage_principal", "libelle_usage"),
            renovation_potential=data.get("potentiel_gain_renovation"),
            coordinates=Coordinates(lat, lon) if lat is not None and lon is not None else None,
            updated_at=first_present(data, "date_mise_a_jour", "millesime"),
            sources=[self.name],
            raw=data,
        )

