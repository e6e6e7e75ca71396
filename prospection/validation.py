"""Validation helpers for French business identifiers and locations."""

import re
import unicodedata
from typing import Optional

from .exceptions import InputValidationError
from .models import Identifier

SIREN_RE = re.compile(r"^\d{9}$")
SIRET_RE = re.compile(r"^\d{14}$")
POSTAL_CODE_RE = re.compile(r"^\d{5}$")
# Metropolitan departments, Corsica (2A/2B) and overseas (971-976)
DEPARTMENT_RE = re.compile(r"^(?:\d{2}|2[AB]|97[1-6])$")


def clean_identifier(value: str) -> str:
    """Strip whitespace and separators commonly found in pasted identifiers."""
    return re.sub(r"[\s.\-]", "", value or "")


def parse_identifier(value: str) -> Identifier:
    """
    Parse a 9-digit SIREN or 14-digit SIRET.

    Args:
        value: Raw identifier, separators allowed ("123 456 789 00012")

    Returns:
        Identifier with the SIREN always set

    Raises:
        InputValidationError: If the value is neither format
    """
    cleaned = clean_identifier(value)
    if SIRET_RE.match(cleaned):
        return Identifier(siren=cleaned[:9], siret=cleaned)
    if SIREN_RE.match(cleaned):
        return Identifier(siren=cleaned)
    raise InputValidationError(
        f"Invalid identifier {value!r}: expected 9-digit SIREN or 14-digit SIRET"
    )


def validate_siret(value: str) -> str:
    cleaned = clean_identifier(value)
    if not SIRET_RE.match(cleaned):
        raise InputValidationError(f"Invalid SIRET {value!r}: expected 14 digits")
    return cleaned


def validate_postal_code(value: str) -> str:
    cleaned = (value or "").strip()
    if not POSTAL_CODE_RE.match(cleaned):
        raise InputValidationError(f"Invalid postal code {value!r}")
    return cleaned


def validate_department(value: str) -> str:
    cleaned = (value or "").strip().upper()
    if not DEPARTMENT_RE.match(cleaned):
        raise InputValidationError(f"Invalid department {value!r}")
    return cleaned


def department_from_postal_code(postal_code: Optional[str]) -> Optional[str]:
    """
    Derive the department code from a postal code.

    Corsica (20xxx) splits into 2A/2B and overseas codes use three digits.
    """
    if not postal_code or not POSTAL_CODE_RE.match(postal_code):
        return None
    if postal_code.startswith("97"):
        return postal_code[:3]
    if postal_code.startswith("20"):
        return "2A" if int(postal_code) < 20200 else "2B"
    return postal_code[:2]


def strip_accents(text: str) -> str:
    """Lowercase and remove diacritics ("Île-de-France" -> "ile-de-france")."""
    normalized = unicodedata.normalize("NFD", text or "")
    return "".join(c for c in normalized if unicodedata.category(c) != "Mn").lower().strip()
