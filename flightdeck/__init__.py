"""
FlightDeck - Paragliding Flight Log Core

Real-time flight logging for paraglider pilots: detects takeoff and landing
from a GPS stream, labels flight endpoints with named sites, watches
restricted airspace and shares the live position with observers.

Components:
    - tracking: Flight lifecycle, phase detection, sites, live broadcast, storage
    - airspace: Airspace zones and violation tracking

Example:
    >>> from flightdeck import Config
    >>> from flightdeck.tracking import FlightSession
    >>> session = FlightSession.from_config(Config('config.yaml'))
    >>> for point in gps_stream:
    ...     session.process_point(point)
"""

# Order matters: airspace builds on tracking.models and tracking.clock
from . import config
from . import utils
from . import exceptions
from . import tracking
from . import airspace

from .config import Config

FLIGHTDECK_VERSION = "v0.1.0"

__version__ = FLIGHTDECK_VERSION
__license__ = "MIT"

__all__ = [
    "Config",
    "tracking",
    "airspace",
    "utils",
    "config",
    "exceptions",
]
