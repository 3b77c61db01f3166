"""Custom exceptions for ride management."""


class RideError(Exception):
    """Base class for ride engine failures."""
    pass


class RideValidationError(RideError):
    """Raised when input is missing or malformed, before any store access."""
    pass


class RideNotFoundError(RideError):
    """Raised when a ride cannot be found."""
    pass
