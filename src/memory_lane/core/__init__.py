from .base import ApplicationError, ErrorCode, ErrorLevel
from .errors import (
    DimensionMismatchError,
    EmbeddingUnavailable,
    NotFoundError,
    ParseError,
    ProviderError,
    ProviderUnavailable,
    ValidationError,
)

__all__ = [
    "ApplicationError",
    "DimensionMismatchError",
    "EmbeddingUnavailable",
    "ErrorCode",
    "ErrorLevel",
    "NotFoundError",
    "ParseError",
    "ProviderError",
    "ProviderUnavailable",
    "ValidationError",
]
