"""
FlightDeck Airspace Constants
"""

# Altitude references as published in airspace data
ALTITUDE_REFERENCE_QNH = "QNH"  # above mean sea level
ALTITUDE_REFERENCE_STD = "STD"  # standard pressure
ALTITUDE_REFERENCE_AGL = "AGL"  # above ground, compared as MSL (no terrain model)
ALTITUDE_REFERENCE_FL = "FL"  # flight level, hundreds of feet

# Units that need converting to meters
FEET_UNITS = ("ft", "FT", "feet")

# Zone defaults
DEFAULT_ZONE_KIND = "Restricted"
DEFAULT_ZONE_NAME = "Unknown"
MIN_POLYGON_VERTICES = 3

# Alerts
ALERT_TYPE_AIRSPACE = "airspace_violation"
ALERT_TYPE_ALTITUDE = "altitude_violation"
ALERT_SEVERITY_HIGH = "high"
ALERT_ID_FORMAT = "alert_{flight_id}"

# Violation status values
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
