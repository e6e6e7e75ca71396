"""French administrative regions and their departments."""

from dataclasses import dataclass
from typing import Optional

from .validation import strip_accents


@dataclass(frozen=True)
class Region:
    """An INSEE region with its department codes."""

    code: str
    name: str
    departments: tuple[str, ...]
    aliases: tuple[str, ...] = ()


REGIONS: tuple[Region, ...] = (
    Region("01", "Guadeloupe", ("971",)),
    Region("02", "Martinique", ("972",)),
    Region("03", "Guyane", ("973",)),
    Region("04", "La Réunion", ("974",), ("reunion",)),
    Region("06", "Mayotte", ("976",)),
    Region("11", "Île-de-France", ("75", "77", "78", "91", "92", "93", "94", "95"), ("idf",)),
    Region("24", "Centre-Val de Loire", ("18", "28", "36", "37", "41", "45"), ("centre",)),
    Region("27", "Bourgogne-Franche-Comté", ("21", "25", "39", "58", "70", "71", "89", "90"),
           ("bfc",)),
    Region("28", "Normandie", ("14", "27", "50", "61", "76")),
    Region("32", "Hauts-de-France", ("02", "59", "60", "62", "80"), ("hdf",)),
    Region("44", "Grand Est", ("08", "10", "51", "52", "54", "55", "57", "67", "68", "88")),
    Region("52", "Pays de la Loire", ("44", "49", "53", "72", "85"), ("pdl",)),
    Region("53", "Bretagne", ("22", "29", "35", "56")),
    Region("75", "Nouvelle-Aquitaine",
           ("16", "17", "19", "23", "24", "33", "40", "47", "64", "79", "86", "87")),
    Region("76", "Occitanie",
           ("09", "11", "12", "30", "31", "32", "34", "46", "48", "65", "66", "81", "82")),
    Region("84", "Auvergne-Rhône-Alpes",
           ("01", "03", "07", "15", "26", "38", "42", "43", "63", "69", "73", "74"), ("aura",)),
    Region("93", "Provence-Alpes-Côte d'Azur", ("04", "05", "06", "13", "83", "84"),
           ("paca", "provence alpes cote d'azur")),
    Region("94", "Corse", ("2A", "2B")),
)

_BY_CODE = {r.code: r for r in REGIONS}


def _key(name: str) -> str:
    return strip_accents(name).replace("-", " ").replace("'", " ").replace("  ", " ")


_BY_NAME: dict[str, Region] = {}
for _region in REGIONS:
    _BY_NAME[_key(_region.name)] = _region
    for _alias in _region.aliases:
        _BY_NAME[_key(_alias)] = _region


def get_region(value: Optional[str]) -> Optional[Region]:
    """
    Look up a region by INSEE code or name.

    Names are matched ignoring case, accents and hyphens, so "normandie",
    "Île-de-France" and "ile de france" all resolve.
    """
    if not value:
        return None
    value = value.strip()
    if value in _BY_CODE:
        return _BY_CODE[value]
    return _BY_NAME.get(_key(value))

