"""Insulation-mattress rubric: classified industrial sites with poor insulation."""

from typing import Optional

from ..models import EnrichedProfile, RegulatorySite
from .rubric import Rubric, floor_area, is_pertinent_code

PRODUCT = "matelas_isolants"

POOR_CLASSES = ("E", "F", "G")
WALL_INSULATION_LOW_CM = 5
ROOF_INSULATION_LOW_CM = 10


def best_site(sites: list[RegulatorySite]) -> Optional[RegulatorySite]:
    """Most pertinent site, active ones first."""
    if not sites:
        return None
    return max(sites, key=lambda s: (s.active, s.pertinence))


def score_matelas(profile: EnrichedProfile) -> Rubric:
    """
    Score the insulation-mattress potential of a profile.

    Criteria, in order: classified site (40, +5 when active), insulation
    deficiency (30), roof insulation (5), floor area (15), industry type (10),
    savings potential (5).
    """
    rubric = Rubric()
    building = profile.building
    site = best_site(profile.regulatory_sites)

    if site is not None:
        if site.pertinence >= 80:
            rubric.add("regulatory_site", site.pertinence, 40, "very_pertinent",
                       f"Site ICPE {site.industry_type} très pertinent ({site.pertinence}/100)")
        elif site.pertinence >= 60:
            rubric.add("regulatory_site", site.pertinence, 30, "pertinent",
                       f"Site ICPE {site.industry_type} pertinent")
        else:
            rubric.add("regulatory_site", site.pertinence, 20, "medium",
                       "Site industriel classé détecté")
        if site.active:
            rubric.add("site_active", True, 5, "active", "Site en activité, besoin immédiat potentiel")
        else:
            rubric.add("site_active", False, 0, "inactive", "Site à l'arrêt")
    elif is_pertinent_code(profile.activity_code, PRODUCT):
        rubric.add("regulatory_site", profile.activity_code, 25, "industrial_activity",
                   f"Activité industrielle détectée (NAF {profile.activity_code})")
    else:
        rubric.missing("regulatory_site", "Aucun site industriel classé à proximité")

    energy_class = profile.energy_class
    walls = building.wall_insulation if building else None
    if energy_class in POOR_CLASSES:
        rubric.add("insulation", energy_class, 30, "poor",
                   f"DPE {energy_class}, isolation très insuffisante")
    elif energy_class == "D":
        rubric.add("insulation", energy_class, 20, "medium", "DPE D, isolation moyenne")
    elif walls is not None and walls < WALL_INSULATION_LOW_CM:
        rubric.add("insulation", walls, 15, "weak", f"Isolation des murs faible ({walls:g} cm)")
    elif energy_class or walls is not None:
        rubric.add("insulation", energy_class or walls, 0, "adequate", "Isolation satisfaisante")
    else:
        rubric.missing("insulation", "Niveau d'isolation inconnu")

    roof = building.roof_insulation if building else None
    if roof is not None and roof < ROOF_INSULATION_LOW_CM:
        rubric.add("roof_insulation", roof, 5, "weak", f"Isolation de toiture défaillante ({roof:g} cm)")
    elif roof is not None:
        rubric.add("roof_insulation", roof, 0, "adequate", f"Toiture isolée ({roof:g} cm)")
    else:
        rubric.missing("roof_insulation", "Isolation de toiture inconnue")

    area = floor_area(profile)
    if area is not None:
        if area >= 2000:
            rubric.add("floor_area", area, 15, "very_large",
                       f"Surface très importante ({area:g} m²), volume de matelas important")
        elif area >= 1000:
            rubric.add("floor_area", area, 10, "large", f"Grande surface ({area:g} m²)")
        elif area >= 500:
            rubric.add("floor_area", area, 5, "medium", f"Surface moyenne ({area:g} m²)")
        else:
            rubric.add("floor_area", area, 0, "small", f"Petite surface ({area:g} m²)")
    else:
        rubric.missing("floor_area", "Surface inconnue")

    if site is not None:
        industry = site.industry_type
        if "Chaufferie" in industry or "Combustion" in industry:
            rubric.add("industry_type", industry, 10, "high", f"Type d'industrie très pertinent : {industry}")
        elif any(k in industry for k in ("Métallurgie", "Chimie", "Production")):
            rubric.add("industry_type", industry, 7, "medium", f"Type d'industrie pertinent : {industry}")
        else:
            rubric.add("industry_type", industry, 0, "other", f"Type d'industrie : {industry}")
    else:
        rubric.missing("industry_type", "Type d'industrie inconnu")

    consumption = profile.consumption
    potential = building.renovation_potential if building else None
    if (consumption is not None and consumption > 250) or (potential or "").lower() == "élevé":
        rubric.add("savings", consumption if consumption is not None else potential, 5, "high",
                   "Fort potentiel d'économies d'énergie")
    elif consumption is not None or potential:
        rubric.add("savings", consumption if consumption is not None else potential, 0, "normal",
                   "Potentiel d'économies modéré")
    else:
        rubric.missing("savings", "Consommation inconnue")

    return rubric
