# tests/test_id_parser.py
"""Unit tests for the ID payload parser."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
from datetime import date
from doorcount.services.id_parser import (
    age_band, calculate_age, is_expired, parse_id_date, parse_id_payload,
)

AAMVA_US = (
    "@\n\x1e\r"
    "ANSI 636015080002DL00410278ZT03190008DLDAQ12345678\n"
    "DCSDOE\n"
    "DACJANE\n"
    "DBB01151990\n"
    "DBA01152030\n"
    "DBC2\n"
    "DAJTX\n"
    "DAK787010000\n"
    "DCGUSA\n"
)

AAMVA_CANADA = (
    "@\n\x1e\r"
    "ANSI 636012080002DL00410278ZT03190008DLDAQA1234-56789-01234\n"
    "DAAMARTIN,LUC,PAUL\n"
    "DBB19900115\n"
    "DBA20300115\n"
    "DBC1\n"
    "DAJON\n"
    "DCGCAN\n"
)


class TestAAMVAParsing:
    def test_us_licence(self):
        parsed = parse_id_payload(AAMVA_US)
        assert parsed.source_format == "aamva"
        assert parsed.id_number == "12345678"
        assert parsed.issuing_region == "TX"
        assert parsed.date_of_birth == date(1990, 1, 15)
        assert parsed.expiration_date == date(2030, 1, 15)
        assert parsed.first_name == "JANE"
        assert parsed.last_name == "DOE"
        assert parsed.gender == "F"
        assert parsed.postal_code == "78701"
        assert parsed.missing_required() == []

    def test_canadian_dates_are_year_first(self):
        parsed = parse_id_payload(AAMVA_CANADA)
        assert parsed.date_of_birth == date(1990, 1, 15)
        assert parsed.expiration_date == date(2030, 1, 15)
        assert parsed.id_number == "A1234-56789-01234"

    def test_legacy_full_name_element(self):
        parsed = parse_id_payload(AAMVA_CANADA)
        assert parsed.last_name == "MARTIN"
        assert parsed.first_name == "LUC"
        assert parsed.initials == "LM"
        assert parsed.gender == "M"

    def test_missing_dob_is_reported(self):
        raw = AAMVA_US.replace("DBB01151990\n", "")
        parsed = parse_id_payload(raw)
        assert parsed.missing_required() == ["date_of_birth"]

    def test_garbage_yields_empty_identity(self):
        parsed = parse_id_payload("hello world")
        assert parsed.missing_required() == ["id_number", "issuing_region", "date_of_birth"]


class TestJSONParsing:
    def test_camel_case_fields(self):
        raw = json.dumps({
            "idNumber": "D1234567", "issuingState": "ca", "dob": "1990-01-15",
            "expirationDate": "2030-01-15", "firstName": "Ana", "lastName": "Lopez", "gender": "2",
        })
        parsed = parse_id_payload(raw)
        assert parsed.source_format == "json"
        assert parsed.issuing_region == "CA"
        assert parsed.date_of_birth == date(1990, 1, 15)
        assert parsed.gender == "F"
        assert parsed.initials == "AL"

    def test_snake_case_fields(self):
        raw = json.dumps({"id_number": "X1", "state": "NY", "date_of_birth": "01151990"})
        parsed = parse_id_payload(raw)
        assert parsed.id_number == "X1"
        assert parsed.date_of_birth == date(1990, 1, 15)

    def test_broken_json(self):
        parsed = parse_id_payload('{"idNumber": ')
        assert parsed.source_format == "unknown"
        assert parsed.missing_required()

    def test_blank_payload(self):
        assert parse_id_payload("   ").missing_required()


class TestDateHelpers:
    @pytest.mark.parametrize("value, country, expected", [
        ("01151990", None, date(1990, 1, 15)),
        ("19900115", None, date(1990, 1, 15)),
        ("19900115", "CAN", date(1990, 1, 15)),
        ("1990-01-15", None, date(1990, 1, 15)),
        ("13451990", None, None),
        ("", None, None),
        ("15/01/1990", None, None),
    ])
    def test_parse_id_date(self, value, country, expected):
        assert parse_id_date(value, country) == expected

    def test_age_before_and_after_birthday(self):
        dob = date(2005, 10, 20)
        assert calculate_age(dob, date(2026, 10, 19)) == 20
        assert calculate_age(dob, date(2026, 10, 20)) == 21

    def test_expiry_is_inclusive(self):
        today = date(2026, 10, 19)
        assert not is_expired(date(2026, 10, 19), today)
        assert is_expired(date(2026, 10, 18), today)
        assert not is_expired(None, today)

    @pytest.mark.parametrize("age, band", [
        (None, "Under 18"), (17, "Under 18"), (18, "18-20"), (21, "21-24"),
        (25, "25-29"), (30, "30-39"), (40, "40+"), (77, "40+"),
    ])
    def test_age_band(self, age, band):
        assert age_band(age) == band
