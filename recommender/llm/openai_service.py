"""
OpenAI Service - embedding provider using the OpenAI API.

Works against api.openai.com or any OpenAI-compatible embedding server (base_url).
SDK-level retries are disabled: the EmbeddingClient owns the retry policy.
"""
from typing import List, Optional, Sequence
import logging
import re

import openai
from openai import OpenAI

from recommender.errors import (
    EmbeddingGenerationError,
    EmbeddingProviderError,
    RateLimitExceeded,
)
from recommender.llm.interfaces import EmbeddingProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rate-limit header helpers
# ---------------------------------------------------------------------------

def _parse_reset_duration(value: str) -> float:
    """Parse an OpenAI reset-timer header value like '1s', '500ms', '1m30s' into seconds."""
    total = 0.0
    for amount, unit in re.findall(r"([\d.]+)(ms|s|m|h)", value):
        a = float(amount)
        if unit == "ms":
            total += a / 1000
        elif unit == "s":
            total += a
        elif unit == "m":
            total += a * 60
        else:  # h
            total += a * 3600
    return total


def _wait_from_rate_limit_headers(exc: openai.RateLimitError) -> float:
    """Extract the longest declared wait from rate-limit response headers.

    Reads (taking the maximum):
      - ``retry-after``                standard HTTP, plain seconds
      - ``x-ratelimit-reset-requests`` OpenAI request-quota reset duration
      - ``x-ratelimit-reset-tokens``   OpenAI token-quota reset duration

    Returns 0.0 if no usable header is present.
    """
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return 0.0

    candidates: List[float] = []

    retry_after = headers.get("retry-after", "")
    if retry_after:
        try:
            candidates.append(float(retry_after))
        except ValueError:
            pass

    for header in ("x-ratelimit-reset-requests", "x-ratelimit-reset-tokens"):
        parsed = _parse_reset_duration(headers.get(header, "") or "")
        if parsed > 0:
            candidates.append(parsed)

    return max(candidates) if candidates else 0.0


def translate_openai_error(
    exc: openai.OpenAIError,
    operation: str,
    default_retry_after: float = 60.0,
    text: Optional[str] = None,
) -> Exception:
    """Map an OpenAI SDK exception onto the engine's error taxonomy."""
    if isinstance(exc, openai.RateLimitError):
        wait = _wait_from_rate_limit_headers(exc)
        return RateLimitExceeded(
            "Embedding provider rate limit exceeded",
            retry_after=wait if wait > 0 else default_retry_after,
            operation=operation,
            cause=exc,
        )
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return EmbeddingProviderError(
            "Embedding provider rejected the credentials",
            operation=operation, cause=exc, retriable=False,
        )
    if isinstance(exc, openai.BadRequestError):
        return EmbeddingGenerationError(
            f"Embedding provider rejected the input: {exc}",
            text=text, operation=operation, cause=exc,
        )
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError, openai.InternalServerError)):
        return EmbeddingProviderError(
            f"Embedding provider unavailable: {type(exc).__name__}",
            operation=operation, cause=exc,
        )
    if isinstance(exc, openai.APIStatusError):
        retriable = exc.status_code >= 500
        return EmbeddingProviderError(
            f"Embedding provider returned HTTP {exc.status_code}",
            operation=operation, cause=exc, retriable=retriable, status=exc.status_code,
        )
    return EmbeddingProviderError(
        f"Embedding provider error: {exc}", operation=operation, cause=exc, retriable=False,
    )


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embedding provider.

    Exposes a single ``embeddings.create`` call per batch. Every SDK exception is
    translated before it leaves this class.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
        model: str = "text-embedding-3-large",
        dimensions: Optional[int] = 3072,
        timeout: float = 10.0,
        default_retry_after: float = 60.0,
        client: Optional[OpenAI] = None,
    ):
        self._client = client
        self._client_kwargs = {'max_retries': 0, 'timeout': timeout}
        if api_key:
            self._client_kwargs['api_key'] = api_key
        if base_url:
            self._client_kwargs['base_url'] = base_url
        if organization:
            self._client_kwargs['organization'] = organization

        self.model = model
        self.dimensions = dimensions
        self.default_retry_after = default_retry_after

    @property
    def client(self) -> OpenAI:
        """Get or create the OpenAI client.

        The SDK refuses to build a client without credentials; that surfaces as a
        non-retriable EmbeddingProviderError on first use instead of at wiring time.
        """
        if self._client is None:
            try:
                self._client = OpenAI(**self._client_kwargs)
            except openai.OpenAIError as e:
                raise EmbeddingProviderError(
                    f"Embedding provider is not configured: {e}",
                    operation="configure", cause=e, retriable=False,
                )
        return self._client

    @property
    def provider_version(self) -> str:
        if self.dimensions:
            return f"{self.model}-{self.dimensions}"
        return self.model

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        """Generate embeddings for texts in one request."""
        kwargs = {'input': list(texts), 'model': self.model}
        if self.dimensions:
            kwargs['dimensions'] = self.dimensions

        try:
            response = self.client.embeddings.create(**kwargs)
        except openai.OpenAIError as e:
            raise translate_openai_error(
                e, "embed", self.default_retry_after, text=texts[0] if len(texts) == 1 else None
            )

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise EmbeddingGenerationError(
                f"Provider returned {len(data)} embeddings for {len(texts)} inputs",
                operation="embed",
            )
        return [list(item.embedding) for item in data]

    def probe(self) -> bool:
        """Retrieve the configured model. Costs no tokens."""
        try:
            self.client.models.retrieve(self.model)
        except openai.OpenAIError as e:
            raise translate_openai_error(e, "probe", self.default_retry_after)
        return True
