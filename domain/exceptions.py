"""Domain Exceptions

Every failure the booking and cash core can report. They all derive from
ValueError so callers that already handle ValueError keep working; the
``code`` attribute is what the API layer maps to a status.
"""


class VenueError(ValueError):
    """Base class for typed domain failures"""
    code = "venue_error"


class Conflict(VenueError):
    """Window overlaps an occupying booking, or pool capacity is exhausted"""
    code = "conflict"


class InvalidWindow(VenueError):
    code = "invalid_window"


class ResourceUnknown(VenueError):
    code = "resource_unknown"


class InvalidTransition(VenueError):
    code = "invalid_transition"


class HoldExpired(VenueError):
    code = "hold_expired"


class ShiftAlreadyOpen(VenueError):
    code = "shift_already_open"


class ShiftNotOpen(VenueError):
    code = "shift_not_open"


class NothingToCollect(VenueError):
    code = "nothing_to_collect"


class InsufficientRole(VenueError):
    code = "insufficient_role"


class NoTariffConfigured(VenueError):
    """No tariff exists for a booking type, neither for the date nor as default"""
    code = "no_tariff_configured"
