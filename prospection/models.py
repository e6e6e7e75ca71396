"""Data models for the prospection pipeline."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

PRODUCT_TYPES = ("destratification", "pression", "matelas_isolants")


@dataclass(frozen=True)
class Identifier:
    """Registry identifiers: 9-digit SIREN and, when known, 14-digit SIRET."""

    siren: str
    siret: Optional[str] = None

    @property
    def value(self) -> str:
        return self.siret or self.siren

    @property
    def is_establishment(self) -> bool:
        return self.siret is not None


@dataclass
class Coordinates:
    """WGS84 point."""

    lat: float
    lon: float


@dataclass
class Address:
    """Postal address, optionally normalized by the geocoder."""

    street_number: Optional[str] = None
    street_type: Optional[str] = None
    street_name: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    label: Optional[str] = None  # full one-line form
    insee_code: Optional[str] = None
    department: Optional[str] = None
    region: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    score: Optional[float] = None  # geocoding confidence, 0-1
    normalized: bool = False

    @property
    def street(self) -> str:
        parts = [self.street_number, self.street_type, self.street_name]
        return " ".join(p for p in parts if p)

    @property
    def full(self) -> str:
        """One-line address, falling back on the structured parts."""
        if self.label:
            return self.label
        parts = [self.street, " ".join(p for p in (self.postal_code, self.city) if p)]
        return ", ".join(p for p in parts if p)

    def is_empty(self) -> bool:
        return not (self.street or self.postal_code or self.city or self.label)


@dataclass
class GeocodedAddress:
    """One ranked geocoding candidate."""

    label: str
    score: float
    coordinates: Coordinates
    house_number: Optional[str] = None
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    insee_code: Optional[str] = None
    department: Optional[str] = None
    region: Optional[str] = None
    result_type: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class CompanyRecord:
    """A business as returned by a registry source."""

    identifier: Identifier
    name: Optional[str] = None
    address: Address = field(default_factory=Address)
    activity_code: Optional[str] = None
    activity_label: Optional[str] = None
    active: Optional[bool] = None
    category: Optional[str] = None
    created_on: Optional[str] = None
    updated_at: Optional[str] = None
    officers: list[str] = field(default_factory=list)
    source: str = ""
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class Suggestion:
    """Lightweight autocomplete candidate."""

    siret: Optional[str]
    siren: str
    name: str
    address: str = ""
    postal_code: Optional[str] = None
    city: Optional[str] = None
    activity_code: Optional[str] = None

    @property
    def label(self) -> str:
        place = " ".join(p for p in (self.postal_code, self.city) if p)
        return f"{self.name} - {place}" if place else self.name


@dataclass
class BuildingCharacteristics:
    """Physical characteristics of the building hosting an establishment.

    Field names listed in ``estimated`` were derived rather than measured.
    """

    building_id: Optional[str] = None
    rnb_id: Optional[str] = None
    height: Optional[float] = None
    floors: Optional[int] = None
    floor_area: Optional[float] = None
    footprint_area: Optional[float] = None
    wall_insulation: Optional[float] = None  # cm
    roof_insulation: Optional[float] = None  # cm
    heating_type: Optional[str] = None
    heating_installation: Optional[str] = None
    heating_energy: Optional[str] = None
    district_heating: Optional[bool] = None
    energy_class: Optional[str] = None
    consumption: Optional[float] = None  # kWh/m2/year
    dwellings: Optional[int] = None
    construction_year: Optional[int] = None
    nature: Optional[str] = None
    usage: Optional[str] = None
    renovation_potential: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    distance: Optional[float] = None  # metres from the query point
    updated_at: Optional[str] = None
    estimated: set[str] = field(default_factory=set)
    sources: list[str] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    MEASURE_FIELDS = (
        "height", "floors", "floor_area", "footprint_area", "wall_insulation",
        "roof_insulation", "heating_type", "heating_installation", "heating_energy",
        "district_heating", "energy_class", "consumption", "dwellings",
        "construction_year", "nature", "usage", "renovation_potential",
    )

    def field_count(self) -> int:
        """Number of populated measurement fields."""
        return sum(1 for name in self.MEASURE_FIELDS if getattr(self, name) is not None)

    def is_estimated(self, name: str) -> bool:
        return name in self.estimated


@dataclass
class BuildingReference:
    """Entry of the national building register (RNB), used as a join key."""

    rnb_id: str
    coordinates: Optional[Coordinates] = None
    addresses: list[str] = field(default_factory=list)
    plots: list[str] = field(default_factory=list)
    status: Optional[str] = None
    updated_at: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class EnergyDiagnostic:
    """One energy-performance certificate (DPE)."""

    number: str
    energy_class: Optional[str] = None
    ghg_class: Optional[str] = None
    consumption: Optional[float] = None
    surface: Optional[float] = None
    building_type: Optional[str] = None
    construction_year: Optional[int] = None
    heating_installation: Optional[str] = None
    heating_energy: Optional[str] = None
    ceiling_height: Optional[float] = None
    floors: Optional[int] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    issued_on: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class RegulatorySite:
    """A classified industrial installation (ICPE)."""

    site_id: str
    name: str
    regime: Optional[str] = None  # Déclaration / Enregistrement / Autorisation
    active: bool = False
    seveso: Optional[str] = None
    activities: list[str] = field(default_factory=list)
    industry_type: str = "Industrie générale"
    pertinence: int = 0  # 0-100, for insulation mattresses
    coordinates: Optional[Coordinates] = None
    commune: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class ContactInfo:
    """Commercial contact details."""

    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    officers: list[str] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    def is_empty(self) -> bool:
        return not (self.phone or self.email or self.website or self.officers)


@dataclass
class Recommendation:
    """Product suggestion derived from building data."""

    product: str
    pertinence: str
    reason: str


@dataclass
class EnrichedProfile:
    """Everything known about one establishment after enrichment."""

    identifier: Identifier
    name: Optional[str] = None
    address: Address = field(default_factory=Address)
    activity_code: Optional[str] = None
    activity_label: Optional[str] = None
    active: Optional[bool] = None
    building: Optional[BuildingCharacteristics] = None
    energy_diagnostics: list[EnergyDiagnostic] = field(default_factory=list)
    regulatory_sites: list[RegulatorySite] = field(default_factory=list)
    contact: Optional[ContactInfo] = None
    technical_fields: dict[str, Any] = field(default_factory=dict)
    recommendations: list[Recommendation] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    completeness: int = 0
    partial: bool = False
    warnings: list[str] = field(default_factory=list)
    enriched_at: datetime = field(default_factory=datetime.now)

    def add_source(self, source: str) -> None:
        if source not in self.sources:
            self.sources.append(source)

    @property
    def energy_class(self) -> Optional[str]:
        """Energy class from building data, else the newest diagnostic."""
        if self.building and self.building.energy_class:
            return self.building.energy_class
        for diagnostic in self.energy_diagnostics:
            if diagnostic.energy_class:
                return diagnostic.energy_class
        return None

    @property
    def consumption(self) -> Optional[float]:
        if self.building and self.building.consumption is not None:
            return self.building.consumption
        for diagnostic in self.energy_diagnostics:
            if diagnostic.consumption is not None:
                return diagnostic.consumption
        return None

    @property
    def phone(self) -> Optional[str]:
        return self.contact.phone if self.contact else None

    @property
    def email(self) -> Optional[str]:
        return self.contact.email if self.contact else None


@dataclass
class FactorContribution:
    """One rubric criterion as evaluated for a profile."""

    criterion: str
    raw_value: Any
    points: int
    tier: str
    justification: str


@dataclass
class CumacEstimate:
    """Indicative CEE volume range, in kWh cumac."""

    min_kwh: int
    max_kwh: int
    surface: float
    product: str


@dataclass
class ScoringResult:
    """Eligibility score for one product type."""

    product: str
    score: int
    eligible: bool
    threshold: int
    factors: list[FactorContribution] = field(default_factory=list)
    cumac: Optional[CumacEstimate] = None

    @property
    def justifications(self) -> list[str]:
        return [f.justification for f in self.factors if f.justification]


@dataclass
class SearchCriteria:
    """What a prospection search is looking for."""

    product: Optional[str] = None
    codes: list[str] = field(default_factory=list)
    region: Optional[str] = None
    department: Optional[str] = None
    postal_code: Optional[str] = None
    query: Optional[str] = None
    min_height: Optional[float] = None
    min_floor_area: Optional[float] = None
    heating_types: list[str] = field(default_factory=list)
    energy_classes: list[str] = field(default_factory=list)
    min_score: Optional[int] = None
    missing_data_policy: Optional[str] = None  # overrides Settings when set
    enrich_contacts: bool = False
    page: int = 1
    limit: int = 20

    def has_geography(self) -> bool:
        return bool(self.region or self.department or self.postal_code)

    def has_technical_filters(self) -> bool:
        return bool(
            self.min_height is not None
            or self.min_floor_area is not None
            or self.heating_types
            or self.energy_classes
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RankedProspect:
    """A profile with its score for the searched product."""

    profile: EnrichedProfile
    scoring: ScoringResult


@dataclass
class ProspectionResult:
    """One page of ranked prospects."""

    results: list[RankedProspect]
    total: int
    criteria: dict
    sources: set[str] = field(default_factory=set)
    page: int = 1
    limit: int = 20


@dataclass
class SourceResult(Generic[T]):
    """Outcome of one adapter query.

    A failed query is a value like any other: ``value`` is empty and ``error``
    says why.
    """

    source: str
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.value)

    @property
    def failed(self) -> bool:
        return self.error is not None
