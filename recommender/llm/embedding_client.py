"""
Embedding Client - validated, cached and retried access to an EmbeddingProvider.

- embed(text): cache first, then the provider; successful vectors are written back.
- embed_batch(texts): one provider call for up to max_batch_size texts.
- Provider 5xx/timeouts are retried with exponential backoff (tenacity). Rate limits are
  not retried here: RateLimitExceeded carries retry_after for the caller to decide.
"""
import logging
import math
import threading
from functools import partial
from typing import List, Optional, Sequence

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from recommender.cache.embedding_cache import EmbeddingCache
from recommender.errors import (
    EmbeddingGenerationError,
    EmbeddingProviderError,
    RequestCancelled,
    ValidationError,
)
from recommender.llm.interfaces import EmbeddingProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------

def _is_transient(exc: BaseException) -> bool:
    """Only provider outages are retried; bad input and rate limits are not."""
    return isinstance(exc, EmbeddingProviderError) and exc.retriable


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a warning before each retry sleep."""
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Transient embedding provider error (attempt %s). Waiting %.1fs before retry. %s",
        retry_state.attempt_number, wait, exc.log_fields() if exc is not None else "",
    )


def _interruptible_sleep(stop_event: Optional[threading.Event], seconds: float) -> None:
    """Sleep that wakes up early and aborts when the request is stopped."""
    if stop_event is None:
        threading.Event().wait(seconds)
        return
    if stop_event.wait(seconds):
        raise RequestCancelled("Embedding retry abandoned", operation="embed")


def _check_interrupted(stop_event: Optional[threading.Event], operation: str) -> None:
    if stop_event is not None and stop_event.is_set():
        raise RequestCancelled("Embedding request abandoned", operation=operation)


class EmbeddingClient:
    """Wraps an EmbeddingProvider with input validation, caching and retry."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: Optional[EmbeddingCache] = None,
        max_batch_size: int = 50,
        max_input_chars: int = 5000,
        provider_retries: int = 2,
        backoff_base_seconds: float = 0.2,
        backoff_max_seconds: float = 0.4,
        expected_dimensions: Optional[int] = None,
    ):
        self.provider = provider
        self.cache = cache
        self.max_batch_size = max_batch_size
        self.max_input_chars = max_input_chars
        self.provider_retries = provider_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.expected_dimensions = expected_dimensions

    @property
    def provider_version(self) -> str:
        return self.provider.provider_version

    def _retrying(self, stop_event: Optional[threading.Event]) -> Retrying:
        # 2 retries -> waits of base, 2*base (capped at max)
        return Retrying(
            retry=retry_if_exception(_is_transient),
            wait=wait_exponential(multiplier=self.backoff_base_seconds, max=self.backoff_max_seconds),
            stop=stop_after_attempt(self.provider_retries + 1),
            sleep=partial(_interruptible_sleep, stop_event),
            before_sleep=_log_retry,
            reraise=True,
        )

    def _validate_text(self, text: str) -> str:
        if not isinstance(text, str):
            raise EmbeddingGenerationError("Embedding input must be a string", operation="validate")
        trimmed = text.strip()
        if not trimmed:
            raise EmbeddingGenerationError("Embedding input is empty", text=text, operation="validate")
        if len(trimmed) > self.max_input_chars:
            raise EmbeddingGenerationError(
                f"Embedding input exceeds {self.max_input_chars} characters ({len(trimmed)})",
                text=trimmed, operation="validate",
            )
        return trimmed

    def _validate_vector(self, vector: Sequence[float], dimensions: Optional[int]) -> List[float]:
        if not vector:
            raise EmbeddingGenerationError("Provider returned an empty embedding", operation="embed")
        values = [float(v) for v in vector]
        if not all(math.isfinite(v) for v in values):
            raise EmbeddingGenerationError("Provider returned a non-finite embedding", operation="embed")
        if dimensions is not None and len(values) != dimensions:
            raise EmbeddingGenerationError(
                f"Embedding dimension {len(values)} does not match expected {dimensions}",
                operation="embed",
            )
        return values

    def _call_provider(self, texts: List[str], stop_event: Optional[threading.Event]) -> List[List[float]]:
        for attempt in self._retrying(stop_event):
            with attempt:
                _check_interrupted(stop_event, "embed")
                vectors = self.provider.embed_texts(texts)

        if len(vectors) != len(texts):
            raise EmbeddingGenerationError(
                f"Provider returned {len(vectors)} embeddings for {len(texts)} inputs",
                operation="embed",
            )
        dimensions = self.expected_dimensions or (len(vectors[0]) if vectors else None)
        return [self._validate_vector(v, dimensions) for v in vectors]

    def _cached_vector(self, text: str) -> Optional[List[float]]:
        """Cache hit that passes the same checks as a provider vector, else None."""
        cached = self.cache.get(text)
        if cached is None:
            return None
        try:
            return self._validate_vector(cached, self.expected_dimensions)
        except EmbeddingGenerationError as e:
            logger.warning(f"Discarding cached embedding that fails validation: {e.message}")
            self.cache.invalidate(text)
            return None

    def embed(self, text: str, stop_event: Optional[threading.Event] = None) -> List[float]:
        """Embed one text. Raises EmbeddingGenerationError, EmbeddingProviderError or
        RateLimitExceeded."""
        trimmed = self._validate_text(text)

        if self.cache is not None:
            cached = self._cached_vector(trimmed)
            if cached is not None:
                return cached

        vector = self._call_provider([trimmed], stop_event)[0]

        if self.cache is not None:
            self.cache.set(trimmed, vector)
        return vector

    def embed_batch(self, texts: Sequence[str], stop_event: Optional[threading.Event] = None) -> List[List[float]]:
        """Embed up to max_batch_size texts in a single provider call."""
        if not texts:
            return []
        if len(texts) > self.max_batch_size:
            raise ValidationError(
                f"Batch of {len(texts)} exceeds the maximum of {self.max_batch_size}",
                field="texts", operation="embed_batch",
            )

        trimmed = [self._validate_text(t) for t in texts]
        vectors = self._call_provider(trimmed, stop_event)

        if self.cache is not None:
            for text, vector in zip(trimmed, vectors):
                self.cache.set(text, vector)

        logger.debug(f"Embedded batch of {len(trimmed)} texts")
        return vectors

    def probe(self) -> bool:
        return self.provider.probe()
