"""
Shared exceptions for AI service modules.
"""


class AIServiceError(Exception):
    """Raised when AI service operations fail."""

    pass


class EmptyResponseError(AIServiceError):
    """Raised when the model returns no message content."""

    pass


class ServiceError(AIServiceError):
    """Raised on any transport or model failure during extraction."""

    pass


class ExtractionTimeoutError(ServiceError, TimeoutError):
    """Raised when a single extraction call exceeds its time limit."""

    pass
