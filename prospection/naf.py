"""
NAF activity-code registry and partial-code expansion.

The registry is a static YAML file loaded once per process. Expansion turns
a sector or division prefix ("52.10", "5210", "52") into every terminal
sub-class it covers, which is what the registry search API expects.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "data" / "naf_codes.yaml"

_SEPARATORS = re.compile(r"[^0-9A-Za-z]")


@dataclass(frozen=True)
class NafCode:
    """A terminal NAF sub-class with its place in the hierarchy."""

    code: str
    label: str
    section: str
    section_label: str
    division: str
    division_label: str

    @property
    def digits(self) -> str:
        return clean_code(self.code)


def clean_code(code: str) -> str:
    """Remove punctuation and whitespace, uppercase the trailing letter."""
    return _SEPARATORS.sub("", code or "").upper()


def canonicalize(code: str) -> str:
    """
    Format a code as INSEE writes it ("5210a" -> "52.10A").

    A decimal point goes after the second digit of any code of three or more
    characters; shorter codes come back cleaned.
    """
    cleaned = clean_code(code)
    if len(cleaned) >= 3 and cleaned[:2].isdigit():
        return f"{cleaned[:2]}.{cleaned[2:]}"
    return cleaned


class NafRegistry:
    """
    In-memory view of the NAF reference file.

    Usage:
        registry = NafRegistry.load()
        registry.expand("52.10")   # ["52.10A", "52.10B"]
    """

    def __init__(self, codes: list[NafCode], categories: Optional[dict] = None):
        self.codes = codes
        self.categories = categories or {}
        self._by_code = {c.code: c for c in codes}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "NafRegistry":
        """Read the registry YAML. A missing file yields an empty registry."""
        path = Path(path or DEFAULT_REGISTRY_PATH)
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            logger.error("Could not load NAF registry %s: %s", path, e)
            return cls([])

        codes = []
        for section_code, section in (data.get("sections") or {}).items():
            for division_code, division in (section.get("divisions") or {}).items():
                for entry in division.get("codes") or []:
                    codes.append(NafCode(
                        code=entry["code"],
                        label=entry.get("label", ""),
                        section=section_code,
                        section_label=section.get("label", ""),
                        division=str(division_code),
                        division_label=division.get("label", ""),
                    ))

        logger.debug("NAF registry loaded: %d codes", len(codes))
        return cls(codes, data.get("categories_cee") or {})

    def expand(self, partial: str) -> list[str]:
        """
        Expand a partial activity code into canonical sub-class codes.

        A code ending in a letter is already terminal and comes back as a
        singleton. Anything else is a digit prefix matched against the
        registry, in registry order.

        Args:
            partial: Code such as "52.10", "5210", "52" or "52.10A"

        Returns:
            Canonical codes (possibly empty)
        """
        cleaned = clean_code(partial)
        if not cleaned:
            return []

        if cleaned[-1].isalpha():
            return [canonicalize(cleaned)]

        return [c.code for c in self.codes if c.digits.startswith(cleaned)]

    def expand_all(self, partials: list[str]) -> list[str]:
        """Expand several codes, keeping first-seen order and dropping duplicates."""
        seen: dict[str, None] = {}
        for partial in partials:
            for code in self.expand(partial):
                seen.setdefault(code, None)
        return list(seen)

    def get(self, code: str) -> Optional[NafCode]:
        return self._by_code.get(canonicalize(code))

    def label(self, code: Optional[str]) -> Optional[str]:
        info = self.get(code) if code else None
        return info.label if info else None

    def search(self, query: str, limit: int = 50) -> list[NafCode]:
        """Case-insensitive match on code, label or division label."""
        term = (query or "").strip().lower()
        if len(term) < 2:
            return []
        matches = [
            c for c in self.codes
            if term in c.code.lower()
            or term in c.label.lower()
            or term in c.division_label.lower()
        ]
        return matches[:limit]

    def codes_for_product(self, product: str) -> list[NafCode]:
        """Registry entries listed under a CEE product category."""
        category = self.categories.get(product) or {}
        wanted = set(category.get("codes") or [])
        return [c for c in self.codes if c.code in wanted]


@lru_cache(maxsize=1)
def get_registry() -> NafRegistry:
    """Process-wide registry, loaded on first use."""
    return NafRegistry.load()

