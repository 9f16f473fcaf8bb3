"""
FlightDeck Exceptions
"""


class FlightDeckError(Exception):
    """Base class for errors raised by FlightDeck."""


class InvalidTransitionError(FlightDeckError):
    """A lifecycle request does not fit the current flight state."""


class ReferenceDataError(FlightDeckError):
    """A reference data file could not be read at all."""
