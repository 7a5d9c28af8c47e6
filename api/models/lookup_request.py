"""
Pydantic models for carrier lookup API requests and responses.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from models.import_job import ImportStatus


DETAIL_TYPES = (
    "basics",
    "cargo-carried",
    "operation-classification",
    "oos",
    "docket-numbers",
    "authority",
)


class CarrierSearchParams(BaseModel):
    """
    Search request against the FMCSA registry.

    At least one identifier must be given. When several are present the DOT
    number wins, then the MC number, then the name. ``start`` and ``size``
    only apply to name searches.
    """

    dot_number: Optional[str] = Field(None, description="USDOT number to look up")
    mc_number: Optional[str] = Field(None, description="MC/docket number to look up")
    name: Optional[str] = Field(None, description="Carrier name (free text, paginated)")
    start: Optional[int] = Field(None, ge=0, description="Offset of the first result for name searches")
    size: Optional[int] = Field(None, ge=1, description="Page size; defaults to 100 for names and 25 otherwise")

    @field_validator('dot_number', 'mc_number', 'name', mode='before')
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat blank identifiers as missing."""
        if v is None:
            return v
        v = str(v).strip()
        return v or None

    @model_validator(mode='after')
    def validate_identifier(self):
        """Ensure at least one identifier is provided."""
        if not (self.dot_number or self.mc_number or self.name):
            raise ValueError("At least one search parameter is required")
        return self

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "examples": [
                {"dot_number": "1234567"},
                {"mc_number": "987654"},
                {"name": "ABC Trucking", "start": 0, "size": 50}
            ]
        }


class SearchRequest(CarrierSearchParams):
    """Search request body for the HTTP endpoint."""

    save: bool = Field(
        True,
        description="Import the results into the store in the background"
    )


class SearchOutcome(BaseModel):
    """Result of a registry search, with the existence map and import flag."""

    results: Optional[Dict[str, Any]] = Field(None, description="Raw registry response")
    carriers: List[Dict[str, Any]] = Field(default_factory=list, description="Normalized carrier envelopes")
    existing_carriers: Dict[str, bool] = Field(default_factory=dict)
    total: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = Field(
        None,
        description="'configuration', 'conflict', 'registry' or 'validation' when error is set"
    )
    import_started: bool = False


class SearchResponse(SearchOutcome):
    """Search response including the importer status at the time of the reply."""

    import_status: Optional[ImportStatus] = None


class ApiKeyRequest(BaseModel):
    """Body for storing the FMCSA web key"""

    api_key: str = Field(..., min_length=1, description="FMCSA web key")

    @field_validator('api_key')
    @classmethod
    def strip_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("api_key must not be blank")
        return v


class FavoriteUpdate(BaseModel):
    """Body for toggling the favorite flag"""

    is_favorite: bool
