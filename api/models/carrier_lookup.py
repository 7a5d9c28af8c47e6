from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Address(BaseModel):
    """Postal address as reported by the FMCSA registry."""

    street: Optional[str] = Field(None, example="123 Main St")
    city: Optional[str] = Field(None, example="Dallas")
    state: Optional[str] = Field(None, example="TX")
    zip: Optional[str] = Field(None, example="75201")
    country: Optional[str] = Field(None, example="US")


class InsuranceOnFile(BaseModel):
    """Insurance filing present on the registry for one coverage type."""

    status: str = Field("On file", description="Filing status label")
    required: bool = Field(False, description="Whether this coverage is required for the carrier")
    amount: Optional[str] = Field(None, description="Required coverage amount as reported", example="750")


class InsuranceFlags(BaseModel):
    """Which coverage types have a filing on record."""

    bipd: bool = False
    cargo: bool = False


class CarrierLookupResult(BaseModel):
    """Carrier record persisted from an FMCSA lookup.

    Exactly one record exists per DOT number. Records are created on the first
    successful lookup and updated in place afterwards; ``updated_at`` only moves
    when a significant field changed, ``lookup_date`` moves on every lookup.
    """

    # Primary Identifier
    dot_number: str = Field(..., description="USDOT number - natural key of the record", example="1234567")
    mc_mx_ff_number: Optional[str] = Field(None, description="MC/MX/FF docket number", example="987654")

    # Identity
    legal_name: Optional[str] = Field(None, description="Legal name of the carrier", example="ABC Trucking LLC")
    dba_name: Optional[str] = Field(None, description="Doing-business-as name")
    entity_type: Optional[str] = Field(None, description="Registry entity type", example="CARRIER")
    carrier_operation: Optional[str] = Field(None, description="Carrier operation description", example="Interstate")
    cargo_carried: List[str] = Field(default_factory=list, description="Humanized cargo classes carried")

    # Contact
    physical_address: Optional[Address] = None
    mailing_address: Optional[Address] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    # Insurance
    insurance_required: bool = False
    insurance_on_file: InsuranceFlags = Field(default_factory=InsuranceFlags)
    bipd_insurance_required: bool = False
    bipd_insurance_on_file: Optional[InsuranceOnFile] = None
    cargo_insurance_required: bool = False
    cargo_insurance_on_file: Optional[InsuranceOnFile] = None

    # Safety and Status
    safety_rating: Optional[str] = None
    out_of_service_date: Optional[str] = None
    operating_status: str = Field("Inactive", description="'Active' when the registry status code is 'A'")

    # Fleet
    fleet_size: Optional[int] = Field(None, description="Total power units as reported")
    driver_count: Optional[int] = Field(None, description="Total drivers as reported")

    # Audit
    raw_response: Dict[str, Any] = Field(default_factory=dict, description="Full registry envelope")
    data_source: str = "FMCSA"
    is_saved: bool = True
    is_favorite: bool = False
    notes: Optional[str] = None

    # Temporal
    lookup_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "dot_number": "1234567",
                "mc_mx_ff_number": "987654",
                "legal_name": "ABC Trucking LLC",
                "cargo_carried": ["General Freight", "Refrigerated Food"],
                "operating_status": "Active",
                "fleet_size": 25,
                "driver_count": 30,
                "data_source": "FMCSA"
            }
        }


class CarrierLookupFilters(BaseModel):
    """Filters for listing saved lookup results"""

    search_term: Optional[str] = None
    is_favorite: Optional[bool] = None
    operating_status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: int = Field(50, ge=1, le=1000)
    offset: int = Field(0, ge=0)
