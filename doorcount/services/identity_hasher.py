"""
Identity tokens.
HMAC-SHA256 over REGION:IDNUMBER:DOB keyed by ID_HASH_SALT. The token is the
only identity key stored in bans, scans and identities. Raw id numbers
never reach the database.
"""

import hashlib
import hmac
from typing import Optional

from doorcount.config import settings
from doorcount.utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_SALT = "doorcount-fallback-salt-do-not-use-in-prod"

_warned_fallback = False


def _secret() -> bytes:
    global _warned_fallback
    salt = settings.ID_HASH_SALT
    if not salt:
        if not _warned_fallback:
            logger.warning("[HASH] ID_HASH_SALT is not set, using the built-in fallback salt")
            _warned_fallback = True
        salt = FALLBACK_SALT
    return salt.encode("utf-8")


def normalize_field(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def hash_identity(region: str, id_number: str, dob: str) -> str:
    """
    Deterministic identity token for a document.
    dob must already be canonical (YYYYMMDD), see id_parser.format_dob.
    """
    message = ":".join(normalize_field(v) for v in (region, id_number, dob))
    return hmac.new(_secret(), message.encode("utf-8"), hashlib.sha256).hexdigest()
