"""
FlightDeck Tracking Component

Flight lifecycle for a single pilot, from raw position samples to stored
flight records.

Main Classes:
    - FlightSession: Lifecycle owner (takeoff, landing, auto-close, cancel)
    - FlightPhaseDetector: Takeoff/landing classifier
    - SiteResolver: Named site labels for flight endpoints
    - PositionBroadcaster: Throttled live position publishing
    - FlightDatabase: SQLite flight book
    - FlightReader: Flight book queries

Example:
    >>> from flightdeck.tracking import FlightPhaseDetector, generate_test_tracklog
    >>> events = FlightPhaseDetector().analyze_tracklog(
    ...     generate_test_tracklog(46.6863, 7.8632, 1350))
    >>> [e.event_type.value for e in events]
    ['takeoff', 'landing']
"""

from . import constants
from .models import (
    EventType,
    FlightEvent,
    FlightRecord,
    FlightStatus,
    NamedSite,
    PilotProfile,
    ResolutionSource,
    ResolvedSite,
    SiteType,
    TrackPoint,
    TrackStatistics,
    calculate_statistics,
)
from .clock import InlineExecutor, ManualClock, SystemClock, TimerHandle, Watchdog
from .sites import SiteResolver, load_sites, load_sites_file
from .detector import FlightPhase, FlightPhaseDetector, analyze_tracklog
from .broadcaster import HttpObserverStore, PositionBroadcaster
from .database import FlightDatabase
from .reader import FlightReader
from .session import FlightSession
from .simulation import generate_test_tracklog, load_tracklog, replay_tracklog

__all__ = [
    # Main classes
    "FlightSession",
    "FlightPhaseDetector",
    "FlightPhase",
    "SiteResolver",
    "PositionBroadcaster",
    "HttpObserverStore",
    "FlightDatabase",
    "FlightReader",
    # Data model
    "TrackPoint",
    "FlightEvent",
    "EventType",
    "FlightRecord",
    "FlightStatus",
    "NamedSite",
    "SiteType",
    "ResolvedSite",
    "ResolutionSource",
    "PilotProfile",
    "TrackStatistics",
    "calculate_statistics",
    # Clocks
    "SystemClock",
    "ManualClock",
    "TimerHandle",
    "Watchdog",
    "InlineExecutor",
    # Functions
    "analyze_tracklog",
    "load_sites",
    "load_sites_file",
    "generate_test_tracklog",
    "load_tracklog",
    "replay_tracklog",
    # Modules
    "constants",
]
