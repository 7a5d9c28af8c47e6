"""
Shared pytest configuration for all tests.
Sets up the test environment and common fixtures.
"""
import os
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load test environment variables before any imports
from dotenv import load_dotenv

# Load test-specific environment variables
test_env_path = Path(__file__).parent.parent / ".env.test"
if test_env_path.exists():
    load_dotenv(test_env_path, override=True)
else:
    # Fallback to hardcoded test values if .env.test doesn't exist
    os.environ["NEO4J_URI"] = "bolt://localhost:7688"
    os.environ["NEO4J_USER"] = "neo4j"
    os.environ["NEO4J_PASSWORD"] = "testpassword123"
    os.environ["API_KEY"] = "test-api-key"
    os.environ["LOG_FILE"] = str(Path(__file__).parent.parent / "logs" / "test.log")


def _make_carrier(dot_number="1234567", **overrides):
    """Registry carrier payload as returned by the FMCSA API."""
    carrier = {
        "dotNumber": int(dot_number) if str(dot_number).isdigit() else dot_number,
        "legalName": "ABC TRUCKING LLC",
        "dbaName": None,
        "statusCode": "A",
        "totalDrivers": "30",
        "totalPowerUnits": "25",
        "phyStreet": "123 MAIN ST",
        "phyCity": "DALLAS",
        "phyState": "TX",
        "phyZipcode": "75201",
        "phyCountry": "US",
        "telephone": "(214) 555-0100",
        "email": "dispatch@abctrucking.test",
        "safetyRating": "S",
        "bipdInsuranceOnFile": "Y",
        "bipdInsuranceRequired": "Y",
        "bipdRequired": "750",
        "cargoInsuranceOnFile": "N",
        "cargoInsuranceRequired": "N",
        "carrierOperation": {
            "carrierOperationCode": "A",
            "carrierOperationDesc": "Interstate",
            "entityType": "CARRIER",
        },
        "cargoCarried": {"generalFreight": "Y", "hazmat": "N"},
    }
    carrier.update(overrides)
    return carrier


def _make_envelope(dot_number="1234567", **overrides):
    return {"carrier": _make_carrier(dot_number, **overrides)}


@pytest.fixture
def make_carrier():
    """Factory for registry carrier payloads."""
    return _make_carrier


@pytest.fixture
def make_envelope():
    """Factory for ``{"carrier": {...}}`` envelopes."""
    return _make_envelope


@pytest.fixture
def carrier_envelope():
    return _make_envelope()
