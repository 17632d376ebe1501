"""
Parses identity-document scan payloads into a unified ParsedIdentity.
Two formats are accepted, auto-detected like camera events:
  - AAMVA PDF417 text from driver-licence barcodes (DAQ, DCS, DAC, DBB, ...)
  - JSON from kiosk/manual-entry devices ({"idNumber": ..., "issuingState": ...})
Parsing never raises: anything unreadable is left as None and the admission
engine rejects the scan as INVALID_FORMAT.
"""

import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from doorcount.utils.logger import get_logger

logger = get_logger(__name__)

# AAMVA data element IDs we care about
AAMVA_FIELDS = {
    "DAQ": "id_number",
    "DCS": "last_name",
    "DAC": "first_name",
    "DCT": "given_names",     # pre-2009 cards: "FIRST,MIDDLE"
    "DAA": "full_name",       # pre-2009 cards: "LAST,FIRST,MIDDLE"
    "DBB": "dob",
    "DBA": "expiry",
    "DAJ": "state",
    "DBC": "sex",
    "DAK": "postal_code",
    "DCG": "country",
}

_ELEMENT_RE = re.compile(r"^(?:DL|ID)?(D[A-Z]{2})(.*)$")
_HEADER_SUBFILE_RE = re.compile(r"(?:DL|ID)(DAQ.*)$")

SEX_CODES = {"1": "M", "2": "F", "9": "U", "M": "M", "F": "F", "X": "X", "U": "U"}


@dataclass
class ParsedIdentity:
    id_number: Optional[str] = None
    issuing_region: Optional[str] = None
    date_of_birth: Optional[date] = None
    expiration_date: Optional[date] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: Optional[str] = None
    postal_code: Optional[str] = None
    source_format: str = "unknown"      # aamva | json | unknown

    def missing_required(self) -> list[str]:
        missing = []
        if not self.id_number:
            missing.append("id_number")
        if not self.issuing_region:
            missing.append("issuing_region")
        if not self.date_of_birth:
            missing.append("date_of_birth")
        return missing

    @property
    def initials(self) -> str:
        return f"{(self.first_name or '')[:1]}{(self.last_name or '')[:1]}".upper()


def format_dob(value: date) -> str:
    """Canonical date-of-birth form used in identity tokens."""
    return value.strftime("%Y%m%d")


def calculate_age(dob: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    had_birthday = (today.month, today.day) >= (dob.month, dob.day)
    return today.year - dob.year - (0 if had_birthday else 1)


def is_expired(expiration: Optional[date], today: Optional[date] = None) -> bool:
    """A document is valid through its expiry date. No expiry means not expired."""
    if expiration is None:
        return False
    return expiration < (today or date.today())


def age_band(age: Optional[int]) -> str:
    if age is None or age < 18:
        return "Under 18"
    if age < 21:
        return "18-20"
    if age < 25:
        return "21-24"
    if age < 30:
        return "25-29"
    if age < 40:
        return "30-39"
    return "40+"


def parse_id_date(value: Optional[str], country: Optional[str] = None) -> Optional[date]:
    """
    Parse an ID date. AAMVA uses MMDDYYYY for US cards and YYYYMMDD for
    Canadian ones; ISO YYYY-MM-DD is accepted from JSON payloads.
    """
    if not value:
        return None
    value = value.strip()
    try:
        if re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
            return date.fromisoformat(value)
        if not re.fullmatch(r"\d{8}", value):
            return None
        if (country or "").upper() in ("CAN", "CA") or int(value[:4]) > 1231:
            return datetime.strptime(value, "%Y%m%d").date()
        return datetime.strptime(value, "%m%d%Y").date()
    except ValueError:
        logger.debug(f"Unparseable ID date: {value!r}")
        return None


def parse_id_payload(raw: str) -> ParsedIdentity:
    """Auto-detect format and parse accordingly."""
    if not raw or not raw.strip():
        return ParsedIdentity()
    if raw.lstrip()[:1] == "{":
        return _parse_json_payload(raw)
    return _parse_aamva_payload(raw)


def _parse_aamva_payload(raw: str) -> ParsedIdentity:
    elements = {}
    for line in re.split(r"[\r\n\x1e]+", raw):
        line = line.strip()
        if not line:
            continue
        if line.startswith("ANSI"):
            # The first data element is glued onto the header line
            match = _HEADER_SUBFILE_RE.search(line)
            if not match:
                continue
            line = match.group(1)
        match = _ELEMENT_RE.match(line)
        if not match:
            continue
        code, value = match.groups()
        if code in AAMVA_FIELDS and code not in elements:
            elements[code] = value.strip()

    if not elements:
        logger.warning("Scan payload is neither JSON nor AAMVA, no data elements found")
        return ParsedIdentity()

    country = elements.get("DCG")
    first_name = elements.get("DAC")
    last_name = elements.get("DCS")
    if not first_name and elements.get("DCT"):
        first_name = re.split(r"[, ]", elements["DCT"])[0]
    if elements.get("DAA") and not (first_name and last_name):
        parts = [p.strip() for p in elements["DAA"].split(",")]
        last_name = last_name or parts[0]
        if len(parts) > 1:
            first_name = first_name or parts[1]

    postal = elements.get("DAK")
    return ParsedIdentity(
        id_number=elements.get("DAQ") or None,
        issuing_region=(elements.get("DAJ") or "").upper() or None,
        date_of_birth=parse_id_date(elements.get("DBB"), country),
        expiration_date=parse_id_date(elements.get("DBA"), country),
        first_name=first_name or None,
        last_name=last_name or None,
        gender=SEX_CODES.get((elements.get("DBC") or "").upper()),
        postal_code=postal[:5] if postal else None,
        source_format="aamva",
    )


def _parse_json_payload(raw: str) -> ParsedIdentity:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Scan payload looks like JSON but does not parse: {e}")
        return ParsedIdentity()
    if not isinstance(data, dict):
        return ParsedIdentity()

    def pick(*keys):
        for key in keys:
            value = data.get(key)
            if value not in (None, ""):
                return str(value).strip()
        return None

    sex = pick("gender", "sex")
    region = pick("issuingState", "issuing_state", "state", "issuingRegion")
    return ParsedIdentity(
        id_number=pick("idNumber", "id_number"),
        issuing_region=region.upper() if region else None,
        date_of_birth=parse_id_date(pick("dob", "dateOfBirth", "date_of_birth")),
        expiration_date=parse_id_date(pick("expirationDate", "expiration_date", "expiry")),
        first_name=pick("firstName", "first_name"),
        last_name=pick("lastName", "last_name"),
        gender=SEX_CODES.get(sex.upper()) if sex else None,
        postal_code=pick("postalCode", "postal_code", "zip"),
        source_format="json",
    )
