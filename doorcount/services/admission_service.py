"""
Admission decisions for identity scans.

Pipeline per scan, terminal in one pass:
  parse → (invalid: DENIED/INVALID_FORMAT, nothing written)
        → venue + area ownership (mismatch: AdmissionError, nothing written)
        → identity token → ban check → age check → expiry check
        → identities summary + scan ledger row (always)
        → +1 occupancy delta (accepted, auto-increment on, area given)

Ban is checked first and wins over every other reason. The occupancy write
happens after the scan row is committed and its failure only adds a
warning: the decision already stands.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Union

from sqlalchemy.orm import Session

from doorcount.config import settings
from doorcount.constants import CountingMode, DenialReason, OccupancyEventType, ScanOutcomeCode
from doorcount.exceptions import AdmissionError, AreaNotFound
from doorcount.models.ban import Ban
from doorcount.models.venue import Area, Business, Venue
from doorcount.services import ban_registry, scan_ledger
from doorcount.services.id_parser import ParsedIdentity, calculate_age, format_dob, is_expired, parse_id_payload
from doorcount.services.identity_hasher import hash_identity
from doorcount.services.occupancy_ledger import OccupancyWriteResult, check_area_scope, try_apply_delta
from doorcount.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Accepted:
    code = ScanOutcomeCode.ACCEPTED
    reason = None


@dataclass(frozen=True)
class Denied:
    reason: DenialReason
    code = ScanOutcomeCode.DENIED


ScanOutcome = Union[Accepted, Denied]


@dataclass
class AdmissionPolicy:
    age_threshold: int = 21
    auto_increment: bool = True


@dataclass
class ScanRequest:
    raw_payload: str
    venue_id: str
    area_id: Optional[str] = None
    device_id: Optional[str] = None
    user_id: Optional[str] = None


@dataclass
class ScanDecision:
    outcome: ScanOutcome
    identity: ParsedIdentity
    age: Optional[int] = None
    scan_id: Optional[int] = None
    ban: Optional[Ban] = None
    occupancy: Optional[OccupancyWriteResult] = None
    warnings: list[str] = field(default_factory=list)


def load_policy(db: Session, venue_id: str) -> tuple[Venue, AdmissionPolicy]:
    """Venue and its business's admission settings. Unknown venue/business aborts the scan."""
    venue = db.query(Venue).filter(Venue.id == venue_id).first()
    if not venue:
        raise AdmissionError(f"Venue '{venue_id}' not found")
    business = db.query(Business).filter(Business.id == venue.business_id).first()
    if not business:
        raise AdmissionError(f"Business '{venue.business_id}' for venue '{venue_id}' not found")

    policy = AdmissionPolicy(
        age_threshold=business.age_threshold or settings.DEFAULT_AGE_THRESHOLD,
        auto_increment=(settings.AUTO_INCREMENT_ON_SCAN if business.auto_increment_on_scan is None
                        else business.auto_increment_on_scan),
    )
    return venue, policy


def decide(identity: ParsedIdentity, ban_match: ban_registry.BanMatch, policy: AdmissionPolicy,
           today: Optional[date] = None) -> ScanOutcome:
    """Ordered policy checks: ban, then age, then expiry."""
    if ban_match.banned:
        return Denied(DenialReason.BANNED)
    if calculate_age(identity.date_of_birth, today) < policy.age_threshold:
        return Denied(DenialReason.UNDERAGE)
    if is_expired(identity.expiration_date, today):
        return Denied(DenialReason.EXPIRED)
    return Accepted()


def _resolve_area(db: Session, venue: Venue, area_id: Optional[str]) -> Optional[Area]:
    """Registered area for the scan, if any. An area of another venue aborts the scan."""
    if not area_id:
        return None
    try:
        return check_area_scope(db, venue.business_id, venue.id, area_id)
    except AreaNotFound:
        raise AdmissionError(f"Area '{area_id}' does not belong to venue '{venue.id}'")


def _should_count(request: ScanRequest, policy: AdmissionPolicy, area: Optional[Area]) -> bool:
    if not (policy.auto_increment and request.area_id):
        return False
    return area is None or area.counting_mode != CountingMode.MANUAL.value


async def process_scan(db: Session, request: ScanRequest, today: Optional[date] = None) -> ScanDecision:
    identity = parse_id_payload(request.raw_payload)
    missing = identity.missing_required()
    if missing:
        logger.warning(f"[SCAN] venue={request.venue_id} invalid payload, missing {', '.join(missing)}")
        return ScanDecision(outcome=Denied(DenialReason.INVALID_FORMAT), identity=identity)

    venue, policy = load_policy(db, request.venue_id)
    count_in = _should_count(request, policy, _resolve_area(db, venue, request.area_id))
    token = hash_identity(identity.issuing_region, identity.id_number, format_dob(identity.date_of_birth))

    bans = ban_registry.find_active_bans(db, venue.business_id, token)
    ban_match = ban_registry.is_banned(bans, venue.id)
    outcome = decide(identity, ban_match, policy, today)
    age = calculate_age(identity.date_of_birth, today)

    scan_ledger.touch_identity(db, venue.business_id, token, identity)
    scan = scan_ledger.record_scan(
        db,
        business_id=venue.business_id,
        venue_id=venue.id,
        identity_token=token,
        outcome=outcome.code.value,
        denial_reason=outcome.reason.value if outcome.reason else None,
        area_id=request.area_id,
        device_id=request.device_id,
        user_id=request.user_id,
        age=age,
        gender=identity.gender,
        postal_code=identity.postal_code,
    )
    decision = ScanDecision(outcome=outcome, identity=identity, age=age, scan_id=scan.id, ban=ban_match.match)

    if isinstance(outcome, Accepted) and count_in:
        decision.occupancy = try_apply_delta(
            db, venue.business_id, venue.id, request.area_id, 1,
            event_type=OccupancyEventType.SCAN, device_id=request.device_id,
            source="scan", user_id=request.user_id,
        )
        if not decision.occupancy.ok:
            logger.error(f"[SCAN] #{scan.id} accepted but occupancy not updated for {request.area_id}; "
                         f"rebuild or correct the area count")
            decision.warnings.append(f"Occupancy for area '{request.area_id}' was not updated")

    return decision
