class SchedulingError(Exception):
    """Base exception for all scheduling-related errors."""


class InvalidRequestError(SchedulingError):
    """Raised when a required input is missing or malformed."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid '{field}': {reason}")


class StoreUnavailableError(SchedulingError):
    """Raised when the appointment store is unreachable or a query fails."""
