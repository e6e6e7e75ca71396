"""
Client for the INSEE Sirene API.

Authenticates with OAuth2 client credentials; the access token is reused until
shortly before it expires. An integration API key, when configured, is sent
instead of a bearer token.
"""

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx

from ..exceptions import AuthenticationError, SourceUnavailableError, TransientSourceError
from ..models import Address, CompanyRecord, Identifier
from ..validation import parse_identifier
from .base import SourceAdapter, first_present, source_query

logger = logging.getLogger(__name__)

TOKEN_EXPIRY_MARGIN = 60  # seconds


class SireneAdapter(SourceAdapter):
    """Authoritative registry lookup by SIREN or SIRET."""

    name = "sirene"

    def __init__(self, *args, clock: Callable[[], float] = time.monotonic, **kwargs):
        super().__init__(*args, **kwargs)
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def is_configured(self) -> bool:
        s = self.settings
        return bool(s.api_key or (s.client_id and s.client_secret))

    async def _headers(self) -> dict:
        if self.settings.api_key:
            return {"X-INSEE-Api-Key-Integration": self.settings.api_key}
        return {"Authorization": f"Bearer {await self._access_token()}"}

    async def _access_token(self) -> str:
        """Current bearer token, fetching a new one near expiry."""
        async with self._token_lock:
            if self._token and self._clock() < self._token_expires_at:
                return self._token

            s = self.settings
            if not (s.client_id and s.client_secret):
                raise AuthenticationError("INSEE credentials not configured", self.name)

            try:
                response = await self._client.post(
                    s.token_url,
                    data={"grant_type": "client_credentials"},
                    auth=(s.client_id, s.client_secret),
                )
            except httpx.TransportError as e:
                raise TransientSourceError(f"INSEE token endpoint unreachable: {e}", self.name) from e

            self._handle_errors(response)
            try:
                payload = response.json()
                token = payload["access_token"]
                lifetime = float(payload.get("expires_in", 3600))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                raise SourceUnavailableError("INSEE token endpoint returned no usable token", self.name) from e

            self._token = token
            self._token_expires_at = self._clock() + max(lifetime - TOKEN_EXPIRY_MARGIN, 0)
            logger.debug("INSEE token refreshed, valid %.0fs", lifetime)
            return self._token

    async def _get(self, path: str):
        """GET with one fresh-token retry when INSEE rejects a cached bearer token."""
        try:
            return await self._request(path)
        except AuthenticationError:
            if self.settings.api_key or self._token is None:
                raise
            logger.info("INSEE rejected the cached token, fetching a new one")
            self._token = None
            self._token_expires_at = 0.0
            return await self._request(path)

    @source_query()
    async def by_identifier(self, identifier: str) -> Optional[CompanyRecord]:
        """
        Look up an establishment (SIRET) or legal unit (SIREN).

        Returns:
            CompanyRecord, or None when INSEE does not know the identifier
        """
        ident = parse_identifier(identifier)
        if not self.is_configured:
            raise AuthenticationError("INSEE credentials not configured", self.name)

        if ident.siret:
            return await self._establishment(ident.siret)

        async def fetch_unit():
            return await self._get(f"/siren/{ident.siren}")

        data = await self._cached("siren", (ident.siren,), fetch_unit)
        unit = self._parse_legal_unit(data) if data else None
        if unit is None or not unit.identifier.siret:
            return unit

        # A SIREN resolves to its head-office establishment
        head_office = await self._establishment(unit.identifier.siret)
        if head_office is None:
            logger.info("Head office %s of %s not found", unit.identifier.siret, ident.siren)
            return unit
        head_office.name = head_office.name or unit.name
        head_office.activity_code = head_office.activity_code or unit.activity_code
        return head_office

    async def _establishment(self, siret: str) -> Optional[CompanyRecord]:
        async def fetch():
            return await self._get(f"/siret/{siret}")

        data = await self._cached("siret", (siret,), fetch)
        return self._parse_establishment(data) if data else None

    def _parse_establishment(self, data: dict) -> Optional[CompanyRecord]:
        etab = data.get("etablissement") or {}
        if not etab.get("siret"):
            return None
        unit = etab.get("uniteLegale") or {}
        period = (etab.get("periodesEtablissement") or [{}])[0]
        address = etab.get("adresseEtablissement") or {}
        state = first_present(period, "etatAdministratifEtablissement") or \
            etab.get("etatAdministratifEtablissement")

        return CompanyRecord(
            identifier=Identifier(siren=etab.get("siren") or etab["siret"][:9], siret=etab["siret"]),
            name=_unit_name(unit) or period.get("denominationUsuelleEtablissement"),
            address=Address(
                street_number=address.get("numeroVoieEtablissement"),
                street_type=address.get("typeVoieEtablissement"),
                street_name=address.get("libelleVoieEtablissement"),
                postal_code=address.get("codePostalEtablissement"),
                city=address.get("libelleCommuneEtablissement"),
                insee_code=address.get("codeCommuneEtablissement"),
            ),
            activity_code=first_present(period, "activitePrincipaleEtablissement")
            or unit.get("activitePrincipaleUniteLegale"),
            active=state == "A" if state else None,
            category=unit.get("categorieEntreprise"),
            created_on=etab.get("dateCreationEtablissement"),
            updated_at=etab.get("dateDernierTraitementEtablissement"),
            source=self.name,
            raw=etab,
        )

    def _parse_legal_unit(self, data: dict) -> Optional[CompanyRecord]:
        unit = data.get("uniteLegale") or {}
        if not unit.get("siren"):
            return None
        period = (unit.get("periodesUniteLegale") or [{}])[0]
        state = period.get("etatAdministratifUniteLegale") or unit.get("etatAdministratifUniteLegale")
        nic = period.get("nicSiegeUniteLegale")

        return CompanyRecord(
            identifier=Identifier(
                siren=unit["siren"],
                siret=f"{unit['siren']}{nic}" if nic else None,
            ),
            name=_unit_name({**unit, **period}),
            activity_code=period.get("activitePrincipaleUniteLegale")
            or unit.get("activitePrincipaleUniteLegale"),
            active=state == "A" if state else None,
            category=unit.get("categorieEntreprise"),
            created_on=unit.get("dateCreationUniteLegale"),
            updated_at=unit.get("dateDernierTraitementUniteLegale"),
            source=self.name,
            raw=unit,
        )


def _unit_name(unit: dict) -> Optional[str]:
    if unit.get("denominationUniteLegale"):
        return unit["denominationUniteLegale"]
    person = " ".join(p for p in (unit.get("prenom1UniteLegale"), unit.get("nomUniteLegale")) if p)
    return person or None
