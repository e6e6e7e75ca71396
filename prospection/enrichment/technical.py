"""Product-specific technical fields, recommendations and completeness."""

from typing import Any, Optional

from ..models import BuildingCharacteristics, EnergyDiagnostic, EnrichedProfile, Recommendation

HEATING_POWER_W_PER_M2 = 50

COMPLETENESS_WEIGHTS = {
    "name": 10,
    "address": 10,
    "activity_code": 10,
    "phone": 15,
    "email": 15,
    "building": 20,
    "energy": 15,
    "technical": 5,
}

POOR_ENERGY_CLASSES = ("E", "F", "G")


def estimate_heating_power(floor_area: Optional[float]) -> Optional[int]:
    """Rough tertiary heating need in kW."""
    if not floor_area:
        return None
    return round(floor_area * HEATING_POWER_W_PER_M2 / 1000)


def technical_fields(
    building: Optional[BuildingCharacteristics],
    diagnostics: list[EnergyDiagnostic],
    product: Optional[str],
) -> dict[str, Any]:
    """
    Fields a sales engineer needs to size the given product.

    Building data comes first; the newest energy diagnostic fills the gaps.
    Unknown values are left out.
    """
    if not product:
        return {}

    b = building or BuildingCharacteristics()
    dpe = diagnostics[0] if diagnostics else EnergyDiagnostic(number="")
    floor_area = b.floor_area if b.floor_area is not None else dpe.surface
    heating = b.heating_type or b.heating_energy or dpe.heating_energy

    fields: dict[str, Any] = {}
    if product == "destratification":
        fields = {
            "max_height": b.height if b.height is not None else dpe.ceiling_height,
            "floor_area": floor_area,
            "heating_type": heating,
            "floors": b.floors if b.floors is not None else dpe.floors,
            "construction_year": b.construction_year or dpe.construction_year,
            "estimated_power_kw": estimate_heating_power(floor_area),
        }
    elif product == "pression":
        fields = {
            "floor_area": floor_area,
            "heating_type": heating,
            "installation_type": b.heating_installation or dpe.heating_installation,
            "consumption": b.consumption if b.consumption is not None else dpe.consumption,
            "energy_class": b.energy_class or dpe.energy_class,
        }
    elif product == "matelas_isolants":
        insulation = {
            k: v for k, v in (("walls", b.wall_insulation), ("roof", b.roof_insulation))
            if v is not None
        }
        fields = {
            "floor_area": floor_area,
            "heating_type": heating,
            "insulation": insulation or None,
            "renovation_potential": b.renovation_potential,
            "consumption": b.consumption if b.consumption is not None else dpe.consumption,
            "energy_class": b.energy_class or dpe.energy_class,
        }

    return {k: v for k, v in fields.items() if v is not None}


def recommend_products(
    building: Optional[BuildingCharacteristics],
    energy_class: Optional[str] = None,
) -> list[Recommendation]:
    """Products the building looks suited for, whatever was searched."""
    recommendations = []
    if building is None and energy_class is None:
        return recommendations
    b = building or BuildingCharacteristics()

    if b.height is not None and b.height > 4:
        recommendations.append(Recommendation(
            "destratification", "haute",
            f"Hauteur importante ({b.height:g} m) favorable à la stratification thermique",
        ))
    if b.floor_area is not None and b.floor_area > 500:
        recommendations.append(Recommendation(
            "pression", "moyenne",
            f"Grande surface ({b.floor_area:g} m²) nécessitant une gestion de la pression",
        ))
    energy_class = b.energy_class or energy_class
    if energy_class in POOR_ENERGY_CLASSES:
        recommendations.append(Recommendation(
            "matelas_isolants", "haute",
            f"Mauvaise performance énergétique (DPE {energy_class})",
        ))
    return recommendations


def completeness(profile: EnrichedProfile) -> int:
    """Weighted share of populated profile sections, 0-100."""
    present = {
        "name": bool(profile.name),
        "address": not profile.address.is_empty(),
        "activity_code": bool(profile.activity_code),
        "phone": bool(profile.phone),
        "email": bool(profile.email),
        "building": profile.building is not None and profile.building.field_count() > 0,
        "energy": bool(profile.energy_diagnostics),
        "technical": bool(profile.technical_fields),
    }
    return sum(weight for key, weight in COMPLETENESS_WEIGHTS.items() if present[key])
