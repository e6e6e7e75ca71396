"""Destratification rubric: tall, large, air-heated volumes."""

from ..models import EnrichedProfile
from .rubric import Rubric, contains_any, floor_area, heating_energy, heating_installation, is_pertinent_code

PRODUCT = "destratification"

AIR_HEATING = ("air", "aérien", "aérotherme", "pulsion", "pulsé")
RADIANT_HEATING = ("radiant", "rayonnant")
FAVOURABLE_NATURE = ("industriel", "commercial")
FAVOURABLE_USAGE = ("entrepôt", "commerce")
ENERGY_CLASSES = ("D", "E", "F", "G")


def score_destratification(profile: EnrichedProfile) -> Rubric:
    """
    Score the destratification potential of a profile.

    Criteria, in order: height (40), floor area (20), heating type (20),
    activity code (15), building nature (5), energy class (5).
    """
    rubric = Rubric()
    building = profile.building

    # Height, falling back on floor count
    height = building.height if building else None
    floors = building.floors if building else None
    if height is not None:
        estimated = " (estimée)" if building.is_estimated("height") else ""
        if height >= 8:
            rubric.add("height", height, 40, "excellent",
                       f"Hauteur exceptionnelle ({height:g} m{estimated}), fort potentiel de destratification")
        elif height >= 6:
            rubric.add("height", height, 30, "very_good",
                       f"Hauteur élevée ({height:g} m{estimated}), bon potentiel de destratification")
        elif height >= 4:
            rubric.add("height", height, 20, "minimum",
                       f"Hauteur suffisante ({height:g} m{estimated}), minimum requis atteint")
        else:
            rubric.add("height", height, 0, "insufficient",
                       f"Hauteur insuffisante ({height:g} m < 4 m)")
    elif floors:
        if floors >= 3:
            rubric.add("height", floors, 25, "estimated_good",
                       f"{floors} niveaux détectés, hauteur estimée suffisante")
        elif floors >= 2:
            rubric.add("height", floors, 15, "estimated_medium",
                       f"{floors} niveaux, hauteur estimée moyenne")
        else:
            rubric.add("height", floors, 0, "insufficient", "Bâtiment de plain-pied")
    else:
        rubric.missing("height", "Hauteur du bâtiment inconnue")

    area = floor_area(profile)
    if area is not None:
        if area >= 2000:
            rubric.add("floor_area", area, 20, "very_large",
                       f"Surface très importante ({area:g} m²), fort volume à traiter")
        elif area >= 1000:
            rubric.add("floor_area", area, 15, "large", f"Grande surface ({area:g} m²)")
        elif area >= 500:
            rubric.add("floor_area", area, 10, "medium", f"Surface moyenne ({area:g} m²)")
        else:
            rubric.add("floor_area", area, 5, "small", f"Petite surface ({area:g} m²)")
    else:
        rubric.missing("floor_area", "Surface inconnue")

    energy, installation = heating_energy(profile), heating_installation(profile)
    if energy or installation:
        heating = " ".join(p for p in (energy, installation) if p)
        if contains_any(heating, AIR_HEATING):
            rubric.add("heating", heating, 20, "ideal",
                       "Chauffage aérien ou air pulsé, idéal pour la destratification")
        elif contains_any(heating, RADIANT_HEATING):
            rubric.add("heating", heating, 15, "very_good",
                       "Chauffage radiant, compatible avec la destratification")
        else:
            rubric.add("heating", heating, 5, "other", f"Chauffage {heating}")
    else:
        rubric.missing("heating", "Type de chauffage inconnu")

    code = profile.activity_code
    if code:
        if is_pertinent_code(code, PRODUCT):
            rubric.add("activity", code, 15, "pertinent", f"Activité pertinente (NAF {code})")
        else:
            rubric.add("activity", code, 5, "other", f"Activité secondaire (NAF {code})")
    else:
        rubric.missing("activity", "Code d'activité inconnu")

    nature = building.nature if building else None
    usage = building.usage if building else None
    if contains_any(nature, FAVOURABLE_NATURE) or contains_any(usage, FAVOURABLE_USAGE):
        rubric.add("building_type", nature or usage, 5, "favourable",
                   f"Type de bâtiment favorable ({nature or usage})")
    elif nature or usage:
        rubric.add("building_type", nature or usage, 0, "other", f"Bâtiment {nature or usage}")
    else:
        rubric.missing("building_type", "Nature du bâtiment inconnue")

    energy_class = profile.energy_class
    if energy_class in ENERGY_CLASSES:
        rubric.add("energy_class", energy_class, 5, "savings",
                   f"DPE {energy_class}, potentiel d'économies d'énergie")
    elif energy_class:
        rubric.add("energy_class", energy_class, 0, "efficient", f"DPE {energy_class}")
    else:
        rubric.missing("energy_class", "Étiquette énergétique inconnue")

    return rubric
