"""Custom exceptions for the K8s Solution Recommender."""

from typing import Optional, Any


class RecommenderError(Exception):
    """Base exception for all K8s Solution Recommender errors."""
    pass

class ValidationError(RecommenderError):
    """Raised for validation errors in messages or data."""
    def __init__(self, message: str, field: Optional[str] = None, value: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value

class LLMConfigurationError(RecommenderError):
    """Raised when LLM configuration is invalid."""
    pass

class UnsupportedProviderError(RecommenderError):
    """Raised when an unsupported LLM provider is requested."""
    pass

class ConfigError(RecommenderError):
    """Raised for configuration-related errors."""
    pass

class VectorIndexError(RecommenderError):
    """Raised when a vector database operation fails."""
    def __init__(self, message: str, collection: Optional[str] = None, operation: Optional[str] = None) -> None:
        super().__init__(message)
        self.collection = collection
        self.operation = operation

class SchemaUnavailableError(RecommenderError):
    """Schema fetch failed or returned a malformed document."""
    def __init__(self, message: str, identifier: Any = None) -> None:
        super().__init__(message)
        self.identifier = identifier

class ReasoningError(RecommenderError):
    """Base class for reasoning service failures."""
    def __init__(self, message: str, prompt_kind: Optional[str] = None) -> None:
        super().__init__(message)
        self.prompt_kind = prompt_kind

class ReasoningParseError(ReasoningError):
    """Reasoning output failed structural validation."""
    def __init__(self, message: str, prompt_kind: Optional[str] = None, raw_output: Optional[str] = None) -> None:
        super().__init__(message, prompt_kind)
        self.raw_output = raw_output

class ReasoningUnavailableError(ReasoningError):
    """Reasoning service could not be reached or timed out."""
    pass

class ContractViolationError(RecommenderError):
    """An enhancement response broke the additive-only contract."""
    def __init__(self, message: str, candidate_index: Optional[int] = None) -> None:
        super().__init__(message)
        self.candidate_index = candidate_index

class DeadlineExceededError(RecommenderError):
    """The request deadline expired before any usable output existed."""
    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage

class RecommendationFailedError(RecommenderError):
    """Pass 1 could not produce any candidate solution."""
    def __init__(self, message: str, stage: Optional[str] = None, cause: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.cause = cause
