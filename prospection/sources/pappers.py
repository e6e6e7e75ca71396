"""Client for the Pappers company API, used only for commercial contacts."""

import logging
from typing import Optional

from ..models import ContactInfo
from ..validation import parse_identifier
from .base import SourceAdapter, source_query

logger = logging.getLogger(__name__)


class PappersAdapter(SourceAdapter):
    """
    Phone, email, website and officers of a company.

    Pappers is a paid service: without an API key the adapter is disabled
    and every query returns an empty result without touching the network.
    """

    name = "pappers"

    @property
    def enabled(self) -> bool:
        return bool(self.settings.api_key)

    @source_query()
    async def by_identifier(self, identifier: str) -> Optional[ContactInfo]:
        """Contact details for a SIREN, or for the company owning a SIRET."""
        siren = parse_identifier(identifier).siren
        if not self.enabled:
            return None

        async def fetch():
            return await self._request(
                "/entreprise", params={"api_token": self.settings.api_key, "siren": siren}
            )

        data = await self._cached("siren", (siren,), fetch)
        if not data:
            return None
        contact = self._parse_contact(data)
        return None if contact.is_empty() else contact

    def _parse_contact(self, data: dict) -> ContactInfo:
        officers = []
        for officer in data.get("representants") or []:
            name = officer.get("nom_complet") or " ".join(
                p for p in (officer.get("prenom"), officer.get("nom")) if p
            )
            if name and not officer.get("date_fin_fonction"):
                quality = officer.get("qualite")
                officers.append(f"{name} ({quality})" if quality else name)

        return ContactInfo(
            phone=data.get("telephone") or None,
            email=data.get("email") or None,
            website=data.get("site_internet") or None,
            officers=officers,
            raw=data,
        )
