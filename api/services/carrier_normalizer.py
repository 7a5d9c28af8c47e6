"""
Normalization of FMCSA carrier payloads into stored lookup records.

The registry answers identifier lookups with ``{"content": {"carrier": {...}}}``
and name searches with ``{"content": [{"carrier": {...}}, ...]}``. Both shapes
are turned into a list of envelopes here so nothing downstream inspects the raw
shape again.
"""

import re
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.carrier_lookup import Address, CarrierLookupResult, InsuranceFlags, InsuranceOnFile

logger = logging.getLogger(__name__)

# Raw payload fields compared to decide whether a stored record needs a full update
SIGNIFICANT_FIELDS = (
    "legalName",
    "dbaName",
    "statusCode",
    "totalDrivers",
    "totalPowerUnits",
    "phyStreet",
    "phyCity",
    "phyState",
    "phyZipcode",
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_CAPITAL = re.compile(r"([A-Z])")


def extract_carrier_envelopes(response: Any) -> List[Dict[str, Any]]:
    """Turn either registry response shape into a list of carrier envelopes.

    Args:
        response: Decoded registry response

    Returns:
        list: Envelopes shaped ``{"carrier": {...}}``; empty for anything else
    """
    if not isinstance(response, dict):
        return []

    content = response.get("content")
    if isinstance(content, list):
        return [item for item in content if isinstance(item, dict)]
    if isinstance(content, dict) and isinstance(content.get("carrier"), dict):
        return [content]
    return []


def get_dot_number(envelope: Any) -> Optional[str]:
    """DOT number of an envelope as a string, or None."""
    if not isinstance(envelope, dict):
        return None
    carrier = envelope.get("carrier")
    if not isinstance(carrier, dict):
        return None
    dot_number = carrier.get("dotNumber")
    if dot_number is None or dot_number == "":
        return None
    return str(dot_number)


def humanize_cargo_key(key: str) -> str:
    """``refrigeratedFood`` -> ``refrigerated Food``: a space before each capital, trimmed."""
    return _CAPITAL.sub(r" \1", key).strip()


def derive_cargo_carried(flags: Optional[Dict[str, Any]]) -> List[str]:
    """Labels of the cargo flags whose value is exactly ``"Y"``."""
    if not isinstance(flags, dict):
        return []
    cargo = []
    for key, value in flags.items():
        if value == "Y":
            label = humanize_cargo_key(key)
            if label not in cargo:
                cargo.append(label)
    return cargo


def derive_insurance_on_file(on_file: Any, required: Any, amount: Any) -> Optional[InsuranceOnFile]:
    """Insurance filing details, present only when the on-file flag is ``"Y"``."""
    if on_file != "Y":
        return None
    return InsuranceOnFile(
        required=required == "Y",
        amount=str(amount) if amount not in (None, "") else None,
    )


def parse_count(value: Any) -> Optional[int]:
    """Parse a registry count the way a lenient integer parse would.

    ``"12"`` -> 12, ``"12 units"`` -> 12, ``""``/None/``"n/a"`` -> None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def _address(carrier: Dict[str, Any], prefix: str) -> Address:
    return Address(
        street=carrier.get(f"{prefix}Street"),
        city=carrier.get(f"{prefix}City"),
        state=carrier.get(f"{prefix}State"),
        zip=carrier.get(f"{prefix}Zipcode"),
        country=carrier.get(f"{prefix}Country"),
    )


def build_lookup_record(envelope: Dict[str, Any], mc_number: Optional[str] = None,
                        now: Optional[datetime] = None) -> CarrierLookupResult:
    """Build the stored record for one carrier envelope.

    Args:
        envelope: ``{"carrier": {...}}`` from the registry
        mc_number: Docket number resolved separately; the payload's own
            ``mcNumber`` is used when this is None
        now: Lookup timestamp, defaults to the current UTC time

    Returns:
        CarrierLookupResult: Normalized record with ``raw_response`` set to the envelope
    """
    carrier = envelope.get("carrier") or {}
    operation = carrier.get("carrierOperation") or {}
    now = now or datetime.now(timezone.utc)

    bipd_required = carrier.get("bipdInsuranceRequired") == "Y"
    cargo_required = carrier.get("cargoInsuranceRequired") == "Y"
    fallback_mc = carrier.get("mcNumber")

    return CarrierLookupResult(
        dot_number=get_dot_number(envelope) or "",
        mc_mx_ff_number=mc_number or (str(fallback_mc) if fallback_mc else None),
        legal_name=carrier.get("legalName"),
        dba_name=carrier.get("dbaName"),
        entity_type=operation.get("entityType"),
        carrier_operation=operation.get("carrierOperationDesc"),
        cargo_carried=derive_cargo_carried(carrier.get("cargoCarried")),
        physical_address=_address(carrier, "phy"),
        mailing_address=_address(carrier, "mailing") if carrier.get("mailingStreet") else None,
        phone=carrier.get("telephone"),
        email=carrier.get("email"),
        insurance_required=bipd_required or cargo_required,
        insurance_on_file=InsuranceFlags(
            bipd=carrier.get("bipdInsuranceOnFile") == "Y",
            cargo=carrier.get("cargoInsuranceOnFile") == "Y",
        ),
        bipd_insurance_required=bipd_required,
        bipd_insurance_on_file=derive_insurance_on_file(
            carrier.get("bipdInsuranceOnFile"),
            carrier.get("bipdInsuranceRequired"),
            carrier.get("bipdRequired"),
        ),
        cargo_insurance_required=cargo_required,
        cargo_insurance_on_file=derive_insurance_on_file(
            carrier.get("cargoInsuranceOnFile"),
            carrier.get("cargoInsuranceRequired"),
            carrier.get("cargoRequired"),
        ),
        safety_rating=carrier.get("safetyRating"),
        out_of_service_date=carrier.get("outOfServiceDate") or None,
        operating_status="Active" if carrier.get("statusCode") == "A" else "Inactive",
        fleet_size=parse_count(carrier.get("totalPowerUnits")),
        driver_count=parse_count(carrier.get("totalDrivers")),
        raw_response=envelope,
        lookup_date=now,
    )


def needs_update(existing: Dict[str, Any], record: CarrierLookupResult) -> bool:
    """Decide whether a stored record must be fully rewritten.

    A new non-null MC number that differs from the stored one always counts.
    Otherwise only ``SIGNIFICANT_FIELDS`` of the raw payload are compared;
    address suite, email and the rest never trigger a rewrite on their own.
    """
    if record.mc_mx_ff_number and existing.get("mc_mx_ff_number") != record.mc_mx_ff_number:
        return True

    existing_raw = existing.get("raw_response") or {}
    old = existing_raw.get("carrier") or {} if isinstance(existing_raw, dict) else {}
    new = record.raw_response.get("carrier") or {}

    changed = [field for field in SIGNIFICANT_FIELDS if old.get(field) != new.get(field)]
    if changed:
        logger.debug(f"DOT {record.dot_number} changed fields: {', '.join(changed)}")
        return True
    return False
