"""Pressure-management rubric: collective heating networks."""

from ..models import EnrichedProfile
from .rubric import Rubric, contains_any, floor_area, heating_energy, heating_installation, is_pertinent_code

PRODUCT = "pression"


def score_pression(profile: EnrichedProfile) -> Rubric:
    """
    Score the pressure-management potential of a profile.

    Criteria, in order: heating installation (40), floor area (20),
    energy carrier (15), dwellings (10), activity code (10), consumption (5).
    """
    rubric = Rubric()
    building = profile.building

    installation = heating_installation(profile)
    district = building.district_heating if building else None
    if contains_any(installation, ("collectif", "chaufferie")):
        rubric.add("installation", installation, 40, "ideal",
                   "Chauffage collectif, idéal pour la régulation de pression")
    elif district:
        rubric.add("installation", "réseau de chaleur", 35, "very_good",
                   "Raccordé à un réseau de chaleur, excellent candidat")
    elif contains_any(installation, ("chaudière", "chaudiere")):
        rubric.add("installation", installation, 30, "very_good",
                   "Chaudière détectée, compatible avec la régulation de pression")
    elif contains_any(installation, ("central",)):
        rubric.add("installation", installation, 20, "good",
                   "Chauffage central, potentiel de régulation de pression")
    elif installation:
        rubric.add("installation", installation, 0, "other", f"Installation {installation}")
    else:
        rubric.missing("installation", "Installation de chauffage inconnue")

    area = floor_area(profile)
    if area is not None:
        if area >= 1500:
            rubric.add("floor_area", area, 20, "very_large",
                       f"Surface très importante ({area:g} m²), grand réseau à équilibrer")
        elif area >= 800:
            rubric.add("floor_area", area, 15, "large", f"Grande surface ({area:g} m²)")
        elif area >= 500:
            rubric.add("floor_area", area, 10, "medium", f"Surface moyenne ({area:g} m²)")
        else:
            rubric.add("floor_area", area, 5, "small", f"Petite surface ({area:g} m²)")
    else:
        rubric.missing("floor_area", "Surface inconnue")

    energy = heating_energy(profile)
    if contains_any(energy, ("gaz", "fioul")):
        rubric.add("energy", energy, 15, "ideal", f"Énergie {energy}, régulation applicable")
    elif contains_any(energy, ("bois", "biomasse")):
        rubric.add("energy", energy, 10, "good", f"Énergie {energy}, compatible")
    elif energy:
        rubric.add("energy", energy, 0, "other", f"Énergie {energy}")
    else:
        rubric.missing("energy", "Énergie de chauffage inconnue")

    dwellings = building.dwellings if building else None
    if dwellings is not None:
        if dwellings >= 20:
            rubric.add("dwellings", dwellings, 10, "large_collective",
                       f"{dwellings} logements, collectif important")
        elif dwellings >= 10:
            rubric.add("dwellings", dwellings, 7, "collective", f"{dwellings} logements, collectif moyen")
        elif dwellings > 1:
            rubric.add("dwellings", dwellings, 5, "small_collective", f"{dwellings} logements")
        else:
            rubric.add("dwellings", dwellings, 0, "single", "Bâtiment non collectif")
    else:
        rubric.missing("dwellings", "Nombre de logements inconnu")

    code = profile.activity_code
    if is_pertinent_code(code, PRODUCT):
        rubric.add("activity", code, 10, "pertinent",
                   f"Activité pertinente pour la régulation de pression (NAF {code})")
    elif code:
        rubric.add("activity", code, 0, "other", f"Activité secondaire (NAF {code})")
    else:
        rubric.missing("activity", "Code d'activité inconnu")

    consumption = profile.consumption
    if consumption is not None and consumption > 200:
        rubric.add("consumption", consumption, 5, "high",
                   f"Consommation élevée ({consumption:g} kWh/m²/an), économies potentielles")
    elif consumption is not None:
        rubric.add("consumption", consumption, 0, "normal", f"Consommation {consumption:g} kWh/m²/an")
    else:
        rubric.missing("consumption", "Consommation inconnue")

    return rubric
