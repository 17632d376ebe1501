"""
Domain exceptions raised by the services layer.
Routers translate these into HTTP errors; policy denials are not exceptions.
"""


class DoorCountError(Exception):
    """Base class for every error raised by doorcount services."""


class AdmissionError(DoorCountError):
    """Admission cannot be decided (e.g. the venue or its business is unknown)."""


class AreaNotFound(DoorCountError):
    def __init__(self, area_id: str):
        super().__init__(f"Area '{area_id}' not found")
        self.area_id = area_id


class BanNotFound(DoorCountError):
    def __init__(self, ban_id: int):
        super().__init__(f"Ban {ban_id} not found")
        self.ban_id = ban_id


class BanTargetNotFound(DoorCountError):
    """The scan a ban was requested from does not exist."""


class OccupancyWriteError(DoorCountError):
    """Appending an occupancy delta or updating its snapshot failed."""

    def __init__(self, area_id: str, delta: int, cause: Exception):
        super().__init__(f"Occupancy write failed for area '{area_id}' (delta {delta:+d}): {cause}")
        self.area_id = area_id
        self.delta = delta
        self.cause = cause
