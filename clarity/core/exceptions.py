"""
Custom exception hierarchy for the reflection engine.

All application exceptions inherit from ClarityError.
"""


class ClarityError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ClarityError):
    """Invalid or missing configuration."""

    pass


class ValidationError(ClarityError):
    """User-supplied input failed validation."""

    pass


# =============================================================================
# Journey Errors
# =============================================================================


class JourneyError(ClarityError):
    """Journey state machine error."""

    pass


class InvalidTransition(JourneyError):
    """Requested state change is not in the transition table.

    Always surfaced to the caller: it indicates a logic error in whatever
    is driving the journey.
    """

    def __init__(self, source: str, target: str):
        self.source = source
        self.target = target
        super().__init__(f"Invalid transition: {source} -> {target}")


class InvalidAction(JourneyError):
    """Operation is not allowed in the current journey state."""

    pass


class SessionNotFoundError(JourneyError):
    """Session does not exist."""

    pass


# =============================================================================
# Content Errors
# =============================================================================


class ContentError(ClarityError):
    """Base for content repository errors."""

    pass


class ContentLoadFailure(ContentError):
    """Content index or query could not be fetched."""

    pass


class RetryExhausted(ContentError):
    """Bounded retry budget for an operation has been consumed."""

    def __init__(self, key: str, attempts: int):
        self.key = key
        self.attempts = attempts
        super().__init__(f"Retry budget exhausted for {key} after {attempts} attempts")


# =============================================================================
# Classification Errors
# =============================================================================


class ClassificationUnavailable(ClarityError):
    """Classifier backend is absent or failed."""

    pass
