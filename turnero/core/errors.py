"""Error taxonomy shared by the booking core and the HTTP layer."""


class TurneroError(Exception):
    """Base class for expected application errors."""

    pass


class ValidationError(TurneroError):
    """Bad or missing input: blank field, past date, blank reason."""

    pass


class NotFoundError(TurneroError):
    """No appointment matches the given token or id."""

    pass


class InvalidTransitionError(TurneroError):
    """Requested state change is not allowed from the current state."""

    pass


class ExternalServiceError(TurneroError):
    """Chat model or Google/mail client failure."""

    pass
