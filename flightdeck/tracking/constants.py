"""
FlightDeck Tracking Constants
Constants used by the tracking components.
"""

# Observer store
LIVE_TRACKING_COLLECTION = "live_tracking"
DEFAULT_HTTP_TIMEOUT = 10  # seconds

# Site labels
UNKNOWN_SITE_NAME = "Unknown Site"
UNKNOWN_TAKEOFF_LABEL = "Unknown Takeoff ({coords})"
UNKNOWN_LANDING_LABEL = "Unknown Landing ({coords})"
LABEL_COORDINATE_PRECISION = 4

# Session status text
STATUS_WAITING = "Waiting for takeoff"
STATUS_IN_FLIGHT = "IN FLIGHT - Takeoff: {takeoff}"
STATUS_COMPLETE = "Flight Complete: {takeoff} → {landing}"
STATUS_CANCELLED = "Flight cancelled"

# Flight ids
FLIGHT_ID_FORMAT = "flight_{millis}_{counter}"

# Simulation physics
SIM_GLIDE_SPEED_MS = 8.0  # Typical paraglider trim speed
SIM_SINK_RATE_MS = 1.2  # Typical paraglider sink rate
SIM_MIN_POINTS = 24
