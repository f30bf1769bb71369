"""Specific error types for memory extraction and retrieval."""

from .base import (
    AIServiceErrorDetails,
    ApplicationError,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    ServiceErrorDetails,
)


class ProviderUnavailable(ApplicationError):
    """Neither extraction provider is usable."""

    def __init__(self, message: str, details: ServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.PROVIDER_UNAVAILABLE,
            level=ErrorLevel.WARNING,
            details=details
            or ServiceErrorDetails(source="extraction", operation="select_provider", service_name="none"),
        )


class ProviderError(ApplicationError):
    """A single extraction provider failed; the caller may fall through to the next one."""

    def __init__(self, message: str, details: ServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.PROVIDER_FAILED,
            level=ErrorLevel.WARNING,
            details=details,
        )


class ParseError(ApplicationError):
    """Provider output could not be parsed as a JSON array."""

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.PROVIDER_OUTPUT_INVALID,
            level=ErrorLevel.WARNING,
            details=details,
        )


class EmbeddingUnavailable(ApplicationError):
    """The local embedding endpoint could not be used."""

    def __init__(self, message: str, details: ServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.EMBEDDING_UNAVAILABLE,
            level=ErrorLevel.WARNING,
            details=details,
        )


class DimensionMismatchError(ApplicationError):
    """A vector does not have the configured dimension."""

    def __init__(self, message: str, details: AIServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
            level=ErrorLevel.ERROR,
            details=details,
        )


class ValidationError(ApplicationError):
    """Invalid input to a core operation."""

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.INVALID_INPUT,
            level=ErrorLevel.DEBUG,
            details=details,
        )


class NotFoundError(ApplicationError):
    """A requested session or memory does not exist."""

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            level=ErrorLevel.WARNING,
            details=details,
        )
