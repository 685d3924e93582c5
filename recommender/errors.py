"""
Error taxonomy for the recommendation engine.

Every failure raised inside the engine is a RecommendationEngineError subclass tagged with
an ErrorKind. Each kind carries two flags:

- retriable: the failure is transient and the operation may be retried with backoff.
- fatal: the failure aborts the request instead of degrading it.

Only ValidationError is surfaced to callers as a client error. Semantic-path errors are
absorbed into a fallback decision by the semantic scorer; CacheError never leaves the cache
call site.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    EMBEDDING_PROVIDER = "EmbeddingProviderError"
    RATE_LIMIT_EXCEEDED = "RateLimitExceeded"
    EMBEDDING_GENERATION = "EmbeddingGenerationError"
    VECTOR_STORE = "VectorStoreError"
    SEMANTIC_SEARCH = "SemanticSearchError"
    CACHE = "CacheError"
    VALIDATION = "ValidationError"
    RECOMMENDATION = "RecommendationError"
    REQUEST_CANCELLED = "RequestCancelled"


class RecommendationEngineError(Exception):
    """Base class for every error raised by the engine."""

    kind: ErrorKind = ErrorKind.RECOMMENDATION
    retriable: bool = False
    fatal: bool = True
    status_code: int = 500

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        cause: Optional[BaseException] = None,
        **context: Any
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.cause = cause
        self.context: Dict[str, Any] = context
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        """Machine-readable representation for logs and error responses."""
        payload = {
            "error": self.kind.value,
            "kind": self.kind.value,
            "message": self.message,
            "operation": self.operation,
            "retriable": self.retriable,
            "statusCode": self.status_code,
        }
        if self.cause is not None:
            payload["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        if self.context:
            payload["context"] = dict(self.context)
        return payload

    def log_fields(self) -> str:
        return (
            f"kind={self.kind.value} operation={self.operation} "
            f"retriable={self.retriable} message={self.message!r}"
            + (f" cause={self.cause!r}" if self.cause is not None else "")
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, operation={self.operation!r})"


class EmbeddingProviderError(RecommendationEngineError):
    """Provider 5xx, timeout or connection failure."""
    kind = ErrorKind.EMBEDDING_PROVIDER
    retriable = True
    fatal = False
    status_code = 503

    def __init__(self, message: str, operation: str = "embed", cause=None,
                 provider: str = "openai", retriable: Optional[bool] = None, **context):
        super().__init__(message, operation, cause, provider=provider, **context)
        self.provider = provider
        if retriable is not None:
            # Authentication failures are provider errors that retrying cannot fix.
            self.retriable = retriable


class RateLimitExceeded(RecommendationEngineError):
    """Provider answered 429; retry is allowed after ``retry_after`` seconds."""
    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    retriable = True
    fatal = False
    status_code = 429

    def __init__(self, message: str, retry_after: float = 60.0, operation: str = "embed",
                 cause=None, **context):
        super().__init__(message, operation, cause, retry_after=retry_after, **context)
        self.retry_after = float(retry_after)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["retryAfter"] = self.retry_after
        return payload


class EmbeddingGenerationError(RecommendationEngineError):
    """Input text could not be embedded (empty, oversized or malformed)."""
    kind = ErrorKind.EMBEDDING_GENERATION
    retriable = True
    fatal = False
    status_code = 500

    def __init__(self, message: str, text: Optional[str] = None, operation: str = "embed",
                 cause=None, **context):
        preview = None
        if text is not None:
            preview = text[:100] + ("..." if len(text) > 100 else "")
        super().__init__(message, operation, cause, text=preview, **context)
        self.text = preview


class VectorStoreError(RecommendationEngineError):
    """Vector store unreachable or misconfigured (e.g. missing collection)."""
    kind = ErrorKind.VECTOR_STORE
    retriable = False
    fatal = False
    status_code = 500


class SemanticSearchError(RecommendationEngineError):
    """Semantic search could not run, typically because the query vector is malformed."""
    kind = ErrorKind.SEMANTIC_SEARCH
    retriable = False
    fatal = False
    status_code = 500


class CacheError(RecommendationEngineError):
    """Cache store failure. Always swallowed at the cache call site."""
    kind = ErrorKind.CACHE
    retriable = True
    fatal = False
    status_code = 500


class ValidationError(RecommendationEngineError):
    """Invalid caller input. The only kind returned to callers as a client error."""
    kind = ErrorKind.VALIDATION
    retriable = False
    fatal = True
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, operation: str = "validate",
                 cause=None, **context):
        super().__init__(message, operation, cause, field=field, **context)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["error"] = "INVALID_INPUT"
        payload["field"] = self.field
        return payload


class RecommendationError(RecommendationEngineError):
    """Internal invariant violation. Aborts the request with a server error."""
    kind = ErrorKind.RECOMMENDATION
    retriable = False
    fatal = True
    status_code = 500

    def __init__(self, message: str, algorithm: str = "unknown", operation: str = "recommend",
                 cause=None, **context):
        super().__init__(message, operation, cause, algorithm=algorithm, **context)
        self.algorithm = algorithm


class RequestCancelled(RecommendationEngineError):
    """The caller cancelled the request; in-flight work was abandoned."""
    kind = ErrorKind.REQUEST_CANCELLED
    retriable = False
    fatal = True
    status_code = 499


def is_retriable(exc: BaseException) -> bool:
    return isinstance(exc, RecommendationEngineError) and exc.retriable


def is_fatal(exc: BaseException) -> bool:
    """Errors outside the taxonomy are treated as fatal."""
    if isinstance(exc, RecommendationEngineError):
        return exc.fatal
    return True


def is_provider_error(exc: BaseException) -> bool:
    return isinstance(exc, (EmbeddingProviderError, RateLimitExceeded, EmbeddingGenerationError))


def is_vector_store_error(exc: BaseException) -> bool:
    return isinstance(exc, (VectorStoreError, SemanticSearchError))
