# DoorCount: Database Models
# Import all models here for SQLAlchemy discovery

from doorcount.models.venue import Business, Venue, Area                   # noqa
from doorcount.models.scan_event import ScanEvent, Identity                # noqa
from doorcount.models.ban import Ban                                       # noqa
from doorcount.models.occupancy import OccupancyEvent, OccupancySnapshot   # noqa
