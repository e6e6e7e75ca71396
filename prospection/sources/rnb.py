"""Client for the Référentiel National des Bâtiments (RNB) API."""

import logging
import re
from typing import Optional

from ..exceptions import InputValidationError
from ..models import Address, BuildingReference, Coordinates
from .base import SourceAdapter, source_query

logger = logging.getLogger(__name__)

RNB_ID_RE = re.compile(r"^[0-9A-Z]{12}$")


class RnbAdapter(SourceAdapter):
    """
    Unique building identifiers, the pivot between building datasets.

    RNB ids are also carried by BD TOPO features, which lets the orchestrator
    tie a BD TOPO survey to the right building.
    """

    name = "rnb"

    @source_query(list)
    async def by_coordinates(
        self, lat: float, lon: float, radius: int = 100, limit: int = 1
    ) -> list[BuildingReference]:
        """Closest registered buildings to a point."""
        params = {"lat": lat, "lon": lon, "radius": radius, "limit": limit}

        async def fetch():
            return await self._request("/buildings/closest/", params=params)

        data = await self._cached("coords", (round(lat, 6), round(lon, 6), radius, limit), fetch)
        return self._parse_list(data)

    @source_query(list)
    async def by_address(self, address: Address) -> list[BuildingReference]:
        text = address.full
        if len(text.strip()) < 5:
            return []

        async def fetch():
            return await self._request("/buildings/address/", params={"q": text})

        data = await self._cached("address", (text.lower(),), fetch)
        return self._parse_list(data)

    @source_query()
    async def by_identifier(self, rnb_id: str) -> Optional[BuildingReference]:
        rnb_id = (rnb_id or "").replace("-", "").upper()
        if not RNB_ID_RE.match(rnb_id):
            raise InputValidationError(f"Invalid RNB id {rnb_id!r}: expected 12 characters")

        async def fetch():
            return await self._request(f"/buildings/{rnb_id}/")

        data = await self._cached("id", (rnb_id,), fetch)
        return self._parse_building(data) if data else None

    def _parse_list(self, data) -> list[BuildingReference]:
        if isinstance(data, dict):
            data = data.get("results") or []
        if not isinstance(data, list):
            return []
        buildings = [self._parse_building(item) for item in data if isinstance(item, dict)]
        return [b for b in buildings if b.rnb_id]

    def _parse_building(self, data: dict) -> BuildingReference:
        point = (data.get("point") or {}).get("coordinates") or []
        addresses = []
        for address in data.get("addresses") or []:
            label = address.get("label") or " ".join(
                str(p) for p in (
                    address.get("street_number"), address.get("street"),
                    address.get("city_zipcode"), address.get("city_name"),
                ) if p
            )
            if label:
                addresses.append(label)

        return BuildingReference(
            rnb_id=data.get("rnb_id") or data.get("id") or "",
            coordinates=Coordinates(lat=point[1], lon=point[0]) if len(point) >= 2 else None,
            addresses=addresses,
            plots=[p.get("id") if isinstance(p, dict) else str(p) for p in data.get("plots") or []],
            status=data.get("status"),
            updated_at=data.get("updated_at") or data.get("created_at"),
            raw=data,
        )
