"""Client for the Base Adresse Nationale geocoder (api-adresse.data.gouv.fr)."""

import logging
from typing import Optional

from ..models import Address, Coordinates, GeocodedAddress, SourceResult
from .base import SourceAdapter, source_query, to_float

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_SCORE = 0.4
AUTOCOMPLETE_TTL = 300


def is_low_confidence(candidate: GeocodedAddress) -> bool:
    """Scores under 0.4 usually point at the wrong street or commune."""
    return candidate.score < LOW_CONFIDENCE_SCORE


class BanAdapter(SourceAdapter):
    """
    Free-text address geocoding.

    Usage:
        result = await ban.by_address("20 avenue de Ségur Paris", limit=3)
        best = result.value[0] if result.found else None
    """

    name = "ban"

    @source_query(list)
    async def by_address(
        self,
        text: str,
        postcode: Optional[str] = None,
        limit: int = 5,
    ) -> list[GeocodedAddress]:
        """Ranked candidates for a free-text address, best first."""
        text = (text or "").strip()
        if len(text) < 3:
            return []
        return await self._search(text, postcode, limit, autocomplete=False)

    @source_query(list)
    async def autocomplete(self, partial: str, limit: int = 5) -> list[GeocodedAddress]:
        partial = (partial or "").strip()
        if len(partial) < 3:
            return []
        return await self._search(partial, None, limit, autocomplete=True)

    async def _search(
        self, text: str, postcode: Optional[str], limit: int, autocomplete: bool
    ) -> list[GeocodedAddress]:
        params = {
            "q": text,
            "limit": limit,
            "autocomplete": 1 if autocomplete else 0,
            "postcode": postcode,
        }

        async def fetch():
            return await self._request("/search/", params=params)

        ttl = AUTOCOMPLETE_TTL if autocomplete else None
        method = "autocomplete" if autocomplete else "search"
        data = await self._cached(method, (text.lower(), postcode, limit), fetch, ttl=ttl)
        candidates = self._parse_features(data)
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates

    @source_query()
    async def reverse(self, lat: float, lon: float) -> Optional[GeocodedAddress]:
        """Nearest address to a point."""
        params = {"lat": lat, "lon": lon, "limit": 1}

        async def fetch():
            return await self._request("/reverse/", params=params)

        data = await self._cached("reverse", (round(lat, 6), round(lon, 6)), fetch)
        candidates = self._parse_features(data)
        return candidates[0] if candidates else None

    async def geocode(self, address: Address) -> SourceResult:
        """
        Normalize a registry address.

        Returns:
            SourceResult holding a new Address with coordinates and
            administrative codes, empty when the geocoder fails or finds nothing
        """
        text = address.full
        result = await self.by_address(text, postcode=address.postal_code, limit=1)
        if not result.found:
            return SourceResult(self.name, None, error=result.error)
        best = result.value[0]
        if is_low_confidence(best):
            logger.info("Low-confidence geocoding (%.2f) for %r", best.score, text)

        return SourceResult(self.name, Address(
            street_number=best.house_number or address.street_number,
            street_type=address.street_type if not best.street else None,
            street_name=best.street or address.street_name,
            postal_code=best.postal_code or address.postal_code,
            city=best.city or address.city,
            label=best.label,
            insee_code=best.insee_code,
            department=best.department,
            region=best.region,
            coordinates=best.coordinates,
            score=best.score,
            normalized=True,
        ))

    def _parse_features(self, data: Optional[dict]) -> list[GeocodedAddress]:
        candidates = []
        for feature in (data or {}).get("features") or []:
            props = feature.get("properties") or {}
            coords = (feature.get("geometry") or {}).get("coordinates") or []
            if len(coords) < 2:
                continue
            # GeoJSON order is [lon, lat]; context is "76, Seine-Maritime, Normandie"
            context = [part.strip() for part in (props.get("context") or "").split(",")]
            candidates.append(GeocodedAddress(
                label=props.get("label", ""),
                score=to_float(props.get("score")) or 0.0,
                coordinates=Coordinates(lat=float(coords[1]), lon=float(coords[0])),
                house_number=props.get("housenumber"),
                street=props.get("street") or props.get("name"),
                postal_code=props.get("postcode"),
                city=props.get("city"),
                insee_code=props.get("citycode"),
                department=context[0] if context and context[0] else None,
                region=context[-1] if len(context) >= 3 else None,
                result_type=props.get("type"),
                raw=feature,
            ))
        return candidates
