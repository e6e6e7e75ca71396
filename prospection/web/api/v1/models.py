"""Pydantic models for API v1."""

from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class SearchRequest(BaseModel):
    """Search request payload."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product": "destratification",
                "codes": ["52.10"],
                "region": "Normandie",
                "min_height": 6,
                "limit": 20,
            }
        }
    )

    product: Optional[str] = None
    codes: List[str] = Field(default_factory=list)
    region: Optional[str] = None
    department: Optional[str] = None
    postal_code: Optional[str] = None
    query: Optional[str] = None
    min_height: Optional[float] = Field(default=None, ge=0)
    min_floor_area: Optional[float] = Field(default=None, ge=0)
    heating_types: List[str] = Field(default_factory=list)
    energy_classes: List[str] = Field(default_factory=list)
    min_score: Optional[int] = Field(default=None, ge=0, le=100)
    missing_data_policy: Optional[Literal["keep", "drop"]] = None
    enrich_contacts: bool = False
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class SuggestionResponse(BaseModel):
    """One autocomplete entry."""
    siret: Optional[str] = None
    siren: str
    name: str
    label: str
    postal_code: Optional[str] = None
    city: Optional[str] = None
    activity_code: Optional[str] = None


class NafCodeResponse(BaseModel):
    """Activity code with its label."""
    code: str
    label: str
    division: Optional[str] = None
    division_label: Optional[str] = None


class CacheClearResponse(BaseModel):
    """Cache invalidation result."""
    pattern: str
    deleted: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    cache: Optional[dict] = None
    rate_limits: dict = Field(default_factory=dict)
    enabled_sources: List[str] = Field(default_factory=list)
