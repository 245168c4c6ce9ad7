"""
Error taxonomy for the matching, invitation and selection core.

NotFoundError and InvalidTransitionError are user-displayable failures
returned to the immediate caller. ConflictError is kept distinct so
callers can say "someone already acted on this". DeliveryFailure never
leaves the notification dispatcher.
"""


class EngineError(Exception):
    """Base exception for core errors."""
    pass


class NotFoundError(EngineError):
    """Raised when a brief, candidate or invite does not exist."""
    pass


class InvalidTransitionError(EngineError):
    """Raised when an invite cannot make the requested state change."""
    pass


class ConflictError(EngineError):
    """Raised when another actor already resolved the brief or pair."""
    pass


class DeliveryFailure(EngineError):
    """Raised by a notification channel when a message was not delivered."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable
