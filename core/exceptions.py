class QuickCraftError(Exception):
    """Base exception for every error raised by the application."""
    pass


class ValidationError(QuickCraftError):
    """Bad or missing input. Nothing was changed; the caller may re-prompt."""
    pass


class SessionStateError(ValidationError):
    """Operation is not allowed in the session's current state."""
    pass


class InvalidConfigError(ValidationError):
    """Session configuration (e.g. timer length) is out of range."""
    pass


class NotFoundError(QuickCraftError):
    pass


class EvaluationError(QuickCraftError):
    """The theory judge failed or returned something unusable."""
    pass


class StorageError(QuickCraftError):
    """A database write or read failed."""
    pass


class AIServiceError(QuickCraftError):
    """Transport-level failure talking to the AI provider."""
    pass
