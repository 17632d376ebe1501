"""Enumerations shared by models, services and API schemas."""

from enum import Enum


class ScanOutcomeCode(str, Enum):
    ACCEPTED = "ACCEPTED"
    DENIED = "DENIED"


class DenialReason(str, Enum):
    UNDERAGE = "UNDERAGE"
    EXPIRED = "EXPIRED"
    BANNED = "BANNED"
    INVALID_FORMAT = "INVALID_FORMAT"


class OccupancyEventType(str, Enum):
    SCAN = "scan"
    MANUAL = "manual"
    RESET = "reset"
    ADJUSTMENT = "adjustment"


class BanScope(str, Enum):
    BUSINESS = "BUSINESS"
    VENUE = "VENUE"


class BanDuration(str, Enum):
    PERMANENT = "PERMANENT"
    DATED = "DATED"


class ResetScope(str, Enum):
    AREA = "AREA"
    VENUE = "VENUE"
    BUSINESS = "BUSINESS"


class CountingMode(str, Enum):
    MANUAL = "MANUAL"
    AUTO_FROM_SCANS = "AUTO_FROM_SCANS"
    BOTH = "BOTH"
