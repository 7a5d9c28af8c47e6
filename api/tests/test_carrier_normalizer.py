"""
Unit tests for carrier payload normalization.

Covers response shape handling, cargo and insurance derivation, count parsing
and the change-detection rule used by the importer.
"""

import pytest
from datetime import datetime, timezone

from services.carrier_normalizer import (
    build_lookup_record,
    derive_cargo_carried,
    derive_insurance_on_file,
    extract_carrier_envelopes,
    get_dot_number,
    humanize_cargo_key,
    needs_update,
    parse_count,
)


class TestExtractCarrierEnvelopes:
    """Both registry response shapes become a list of envelopes."""

    def test_single_carrier_shape(self, make_carrier):
        carrier = make_carrier("1234567")
        envelopes = extract_carrier_envelopes({"content": {"carrier": carrier}})

        assert len(envelopes) == 1
        assert envelopes[0]["carrier"] is carrier

    def test_list_shape(self, make_envelope):
        content = [make_envelope("111"), make_envelope("222")]
        envelopes = extract_carrier_envelopes({"content": content})

        assert [get_dot_number(e) for e in envelopes] == ["111", "222"]

    def test_single_and_list_shapes_identify_the_same_carrier(self, make_carrier):
        carrier = make_carrier("3487141")
        single = extract_carrier_envelopes({"content": {"carrier": carrier}})
        listed = extract_carrier_envelopes({"content": [{"carrier": carrier}]})

        assert [get_dot_number(e) for e in single] == ["3487141"]
        assert [get_dot_number(e) for e in listed] == ["3487141"]

    @pytest.mark.parametrize("response", [
        None,
        "not json",
        {},
        {"content": None},
        {"content": "No carrier found"},
        {"content": {"carrier": None}},
    ])
    def test_unusable_responses_give_empty_list(self, response):
        assert extract_carrier_envelopes(response) == []

    def test_non_dict_items_dropped(self, make_envelope):
        envelopes = extract_carrier_envelopes({"content": [make_envelope("1"), None, "x"]})
        assert len(envelopes) == 1


class TestDerivations:
    """Field derivations applied to a single carrier."""

    def test_cargo_flags_keep_only_yes(self):
        cargo = derive_cargo_carried({"hazmat": "Y", "refrigerated": "N", "oversized": "Y"})
        assert cargo == ["hazmat", "oversized"]

    def test_cargo_flags_require_exact_yes(self):
        assert derive_cargo_carried({"hazmat": "y", "oversized": True, "liquids": "YES"}) == []

    def test_cargo_flags_missing(self):
        assert derive_cargo_carried(None) == []

    @pytest.mark.parametrize("key,label", [
        ("generalFreight", "general Freight"),
        ("hazmat", "hazmat"),
        ("refrigeratedFood", "refrigerated Food"),
        ("USMail", "U S Mail"),
    ])
    def test_humanize_cargo_key(self, key, label):
        assert humanize_cargo_key(key) == label

    def test_insurance_present_only_when_on_file(self):
        assert derive_insurance_on_file("N", "Y", "750") is None

        insurance = derive_insurance_on_file("Y", "Y", "750")
        assert insurance.status == "On file"
        assert insurance.required is True
        assert insurance.amount == "750"

    def test_insurance_amount_nullable(self):
        insurance = derive_insurance_on_file("Y", "N", "")
        assert insurance.required is False
        assert insurance.amount is None

    @pytest.mark.parametrize("value,expected", [
        ("25", 25),
        (" 7 ", 7),
        ("12 units", 12),
        (40, 40),
        (None, None),
        ("", None),
        ("n/a", None),
    ])
    def test_parse_count(self, value, expected):
        assert parse_count(value) == expected


class TestBuildLookupRecord:
    """Full record construction from an envelope."""

    def test_record_fields(self, make_envelope):
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)
        envelope = make_envelope("1234567")
        record = build_lookup_record(envelope, "987654", now=now)

        assert record.dot_number == "1234567"
        assert record.mc_mx_ff_number == "987654"
        assert record.legal_name == "ABC TRUCKING LLC"
        assert record.entity_type == "CARRIER"
        assert record.carrier_operation == "Interstate"
        assert record.cargo_carried == ["general Freight"]
        assert record.physical_address.city == "DALLAS"
        assert record.physical_address.zip == "75201"
        assert record.mailing_address is None
        assert record.operating_status == "Active"
        assert record.fleet_size == 25
        assert record.driver_count == 30
        assert record.insurance_required is True
        assert record.insurance_on_file.bipd is True
        assert record.insurance_on_file.cargo is False
        assert record.bipd_insurance_on_file.amount == "750"
        assert record.cargo_insurance_on_file is None
        assert record.raw_response == envelope
        assert record.lookup_date == now
        assert record.data_source == "FMCSA"

    def test_inactive_unless_status_a(self, make_envelope):
        assert build_lookup_record(make_envelope(statusCode="I")).operating_status == "Inactive"
        assert build_lookup_record(make_envelope(statusCode=None)).operating_status == "Inactive"

    def test_mailing_address_when_street_present(self, make_envelope):
        record = build_lookup_record(make_envelope(
            mailingStreet="PO BOX 1", mailingCity="AUSTIN", mailingState="TX", mailingZipcode="73301"
        ))
        assert record.mailing_address.street == "PO BOX 1"
        assert record.mailing_address.city == "AUSTIN"

    def test_mc_falls_back_to_payload(self, make_envelope):
        record = build_lookup_record(make_envelope(mcNumber="555111"), None)
        assert record.mc_mx_ff_number == "555111"

    def test_mc_none_when_nothing_available(self, make_envelope):
        assert build_lookup_record(make_envelope(), None).mc_mx_ff_number is None

    def test_resolved_mc_wins_over_payload(self, make_envelope):
        record = build_lookup_record(make_envelope(mcNumber="555111"), "987654")
        assert record.mc_mx_ff_number == "987654"


class TestNeedsUpdate:
    """Change detection against the stored raw payload."""

    def _stored(self, envelope, mc=None):
        return {"dot_number": "1234567", "mc_mx_ff_number": mc, "raw_response": envelope}

    def test_unchanged_payload(self, make_envelope):
        stored = self._stored(make_envelope())
        assert needs_update(stored, build_lookup_record(make_envelope())) is False

    def test_legal_name_change(self, make_envelope):
        stored = self._stored(make_envelope())
        record = build_lookup_record(make_envelope(legalName="ABC FREIGHT LLC"))
        assert needs_update(stored, record) is True

    @pytest.mark.parametrize("field,value", [
        ("dbaName", "ABC"),
        ("statusCode", "I"),
        ("totalDrivers", "31"),
        ("totalPowerUnits", "26"),
        ("phyStreet", "9 ELM ST"),
        ("phyCity", "PLANO"),
        ("phyState", "OK"),
        ("phyZipcode", "75001"),
    ])
    def test_significant_fields(self, make_envelope, field, value):
        stored = self._stored(make_envelope())
        assert needs_update(stored, build_lookup_record(make_envelope(**{field: value}))) is True

    @pytest.mark.parametrize("field,value", [
        ("email", "new@abctrucking.test"),
        ("telephone", "(214) 555-0199"),
        ("safetyRating", "C"),
        ("phyCountry", "MX"),
    ])
    def test_other_fields_do_not_trigger_update(self, make_envelope, field, value):
        stored = self._stored(make_envelope())
        assert needs_update(stored, build_lookup_record(make_envelope(**{field: value}))) is False

    def test_new_mc_number_triggers_update(self, make_envelope):
        stored = self._stored(make_envelope(), mc=None)
        assert needs_update(stored, build_lookup_record(make_envelope(), "987654")) is True

    def test_same_mc_number_does_not(self, make_envelope):
        stored = self._stored(make_envelope(), mc="987654")
        assert needs_update(stored, build_lookup_record(make_envelope(), "987654")) is False

    def test_missing_mc_number_does_not(self, make_envelope):
        stored = self._stored(make_envelope(), mc="987654")
        assert needs_update(stored, build_lookup_record(make_envelope(), None)) is False


class TestReportedCounts:
    """Counts are stored as the registry reports them."""

    def test_negative_counts_kept(self, make_envelope):
        record = build_lookup_record(make_envelope(totalPowerUnits="-1", totalDrivers="-3"))
        assert record.fleet_size == -1
        assert record.driver_count == -3
