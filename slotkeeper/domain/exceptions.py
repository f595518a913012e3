"""
Domain-specific exception hierarchy for the booking engine.
"""


class SlotkeeperError(Exception):
    """Base class for all application-level errors."""


class InvalidInputError(SlotkeeperError, ValueError):
    """Raised for malformed times, dates or missing customer fields."""


class NotQualifiedError(SlotkeeperError):
    """Raised when a staff member cannot perform the requested service."""


class SlotUnavailableError(SlotkeeperError):
    """Raised when a chosen slot is no longer free at admission time."""


class RepositoryError(SlotkeeperError):
    """Raised when the backing store cannot be read or written."""


class ReservationNotFoundError(SlotkeeperError):
    """Raised when a reservation id does not exist."""


class InvalidTransitionError(SlotkeeperError):
    """Raised when a reservation cannot move to the requested status."""


class CancellationWindowError(InvalidTransitionError):
    """Raised when a cancellation arrives too close to the start time."""


class NotificationError(SlotkeeperError):
    """Raised when a notification could not be delivered."""
