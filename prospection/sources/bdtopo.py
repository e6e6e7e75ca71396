"""
Client for the IGN BD TOPO building layer, served over WFS by the Géoplateforme.

BD TOPO is the best source for building height. Queries are spatial: every
building whose footprint lies within a radius of a point.
"""

import logging
from typing import Optional

from ..models import BuildingCharacteristics, Coordinates
from .base import SourceAdapter, first_present, haversine_m, source_query, to_float, to_int

logger = logging.getLogger(__name__)

LAYER = "BDTOPO_V3:batiment"
FLOOR_HEIGHT_M = 3.0
MAX_FEATURES = 10


def estimate_height_from_floors(floors: Optional[int]) -> Optional[float]:
    if not floors or floors < 1:
        return None
    return floors * FLOOR_HEIGHT_M


class BdTopoAdapter(SourceAdapter):
    """
    Buildings near a point, nearest first.

    Usage:
        result = await bdtopo.by_coordinates(49.44, 1.09, radius=50)
        nearest = result.value[0] if result.found else None
    """

    name = "bdtopo"

    async def _headers(self) -> dict:
        return {"apikey": self.settings.api_key} if self.settings.api_key else {}

    @source_query(list)
    async def by_coordinates(
        self, lat: float, lon: float, radius: int = 50
    ) -> list[BuildingCharacteristics]:
        """
        Buildings within ``radius`` metres, sorted by distance to the point.

        Height falls back to floors x 3 m when the survey has none; such
        values are flagged in ``estimated``.
        """
        params = {
            "service": "WFS",
            "version": "2.0.0",
            "request": "GetFeature",
            "typeName": LAYER,
            "outputFormat": "application/json",
            "srsName": "EPSG:4326",
            "count": MAX_FEATURES,
            # WFS points are lon/lat
            "cql_filter": f"DWITHIN(geometrie,POINT({lon} {lat}),{radius / 1000},kilometers)",
        }

        async def fetch():
            return await self._request("", params=params)

        data = await self._cached("coords", (round(lat, 6), round(lon, 6), radius), fetch)

        buildings = [self._parse_feature(f) for f in (data or {}).get("features") or []]
        for building in buildings:
            if building.coordinates:
                building.distance = round(haversine_m(
                    lat, lon, building.coordinates.lat, building.coordinates.lon
                ), 1)
        buildings.sort(key=lambda b: b.distance if b.distance is not None else float("inf"))
        return buildings

    def _parse_feature(self, feature: dict) -> BuildingCharacteristics:
        props = feature.get("properties") or {}
        estimated = set()

        height = to_float(props.get("hauteur"))
        z_min, z_max = to_float(props.get("z_min")), to_float(props.get("z_max"))
        if height is None and z_min is not None and z_max is not None and z_max > z_min:
            height = round(z_max - z_min, 1)

        floors = to_int(first_present(props, "nombre_d_etages", "nombre_etages", "nombre_de_niveaux"))
        if height is None and floors:
            height = estimate_height_from_floors(floors)
            estimated.add("height")

        footprint = to_float(first_present(props, "surface", "surface_emprise"))
        floor_area = None
        if footprint is not None:
            floor_area = round(footprint * max(floors or 1, 1), 1)
            estimated.add("floor_area")

        return BuildingCharacteristics(
            building_id=first_present(props, "cleabs", "id"),
            rnb_id=props.get("id_rnb") or props.get("identifiants_rnb"),
            height=height,
            floors=floors,
            floor_area=floor_area,
            footprint_area=footprint,
            nature=props.get("nature"),
            usage=first_present(props, "usage_1", "usage"),
            coordinates=_centroid(feature.get("geometry")),
            updated_at=first_present(props, "date_modification", "date_creation"),
            estimated=estimated,
            sources=[self.name],
            raw=props,
        )


def _centroid(geometry: Optional[dict]) -> Optional[Coordinates]:
    """Mean of the outer ring (Polygon/MultiPolygon) or the point itself."""
    if not geometry or not geometry.get("coordinates"):
        return None
    coords = geometry["coordinates"]
    kind = geometry.get("type")
    if kind == "Point":
        return Coordinates(lat=coords[1], lon=coords[0])
    if kind == "MultiPolygon":
        coords = coords[0]
        kind = "Polygon"
    if kind == "Polygon" and coords and coords[0]:
        ring = coords[0]
        return Coordinates(
            lat=sum(p[1] for p in ring) / len(ring),
            lon=sum(p[0] for p in ring) / len(ring),
        )
    return None
