#!/usr/bin/env python3
"""
Unit tests for the OpenAI embedding provider and its error translation.
"""
from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from recommender.errors import EmbeddingGenerationError, EmbeddingProviderError, RateLimitExceeded
from recommender.llm.openai_service import (
    OpenAIEmbeddingProvider,
    _parse_reset_duration,
    _wait_from_rate_limit_headers,
    translate_openai_error,
)

URL = "https://api.openai.com/v1/embeddings"


def _request():
    return httpx.Request("POST", URL)


def _status_error(cls, status, headers=None):
    response = httpx.Response(status, headers=headers or {}, request=_request())
    return cls(f"HTTP {status}", response=response, body=None)


def _embedding_response(*vectors, reverse=False):
    data = [MagicMock(index=i, embedding=list(v)) for i, v in enumerate(vectors)]
    if reverse:
        data.reverse()
    response = MagicMock()
    response.data = data
    return response


class TestRateLimitHeaders:

    @pytest.mark.parametrize("value,expected", [
        ("1s", 1.0),
        ("500ms", 0.5),
        ("1m30s", 90.0),
        ("2h", 7200.0),
        ("", 0.0),
    ])
    def test_parse_reset_duration(self, value, expected):
        assert _parse_reset_duration(value) == pytest.approx(expected)

    def test_longest_declared_wait_wins(self):
        exc = _status_error(openai.RateLimitError, 429, {
            "retry-after": "3",
            "x-ratelimit-reset-requests": "1s",
            "x-ratelimit-reset-tokens": "6s",
        })
        assert _wait_from_rate_limit_headers(exc) == 6.0

    def test_no_headers(self):
        exc = _status_error(openai.RateLimitError, 429)
        assert _wait_from_rate_limit_headers(exc) == 0.0


class TestTranslateOpenAIError:

    def test_rate_limit_uses_retry_after_header(self):
        exc = _status_error(openai.RateLimitError, 429, {"retry-after": "2"})

        translated = translate_openai_error(exc, "embed")

        assert isinstance(translated, RateLimitExceeded)
        assert translated.retry_after == 2.0
        assert translated.cause is exc

    def test_rate_limit_without_header_uses_default(self):
        exc = _status_error(openai.RateLimitError, 429)

        translated = translate_openai_error(exc, "embed", default_retry_after=60)

        assert translated.retry_after == 60.0

    def test_authentication_is_not_retriable(self):
        translated = translate_openai_error(_status_error(openai.AuthenticationError, 401), "embed")

        assert isinstance(translated, EmbeddingProviderError)
        assert translated.retriable is False

    def test_bad_request_is_generation_error(self):
        translated = translate_openai_error(
            _status_error(openai.BadRequestError, 400), "embed", text="x" * 200
        )

        assert isinstance(translated, EmbeddingGenerationError)
        assert len(translated.text) == 103

    @pytest.mark.parametrize("exc", [
        openai.APITimeoutError(request=_request()),
        openai.APIConnectionError(request=_request()),
        _status_error(openai.InternalServerError, 503),
    ])
    def test_outages_are_retriable_provider_errors(self, exc):
        translated = translate_openai_error(exc, "embed")

        assert isinstance(translated, EmbeddingProviderError)
        assert translated.retriable is True

    def test_other_4xx_is_not_retriable(self):
        translated = translate_openai_error(_status_error(openai.APIStatusError, 418), "embed")

        assert isinstance(translated, EmbeddingProviderError)
        assert translated.retriable is False
        assert translated.context["status"] == 418


class TestOpenAIEmbeddingProvider:

    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def provider(self, client):
        return OpenAIEmbeddingProvider(model="text-embedding-3-large", dimensions=3072, client=client)

    @patch('recommender.llm.openai_service.OpenAI')
    def test_sdk_retries_disabled(self, mock_openai):
        provider = OpenAIEmbeddingProvider(api_key="sk-test", base_url="http://localhost:8080/v1", timeout=7)
        mock_openai.assert_not_called()

        assert provider.client is mock_openai.return_value
        mock_openai.assert_called_once_with(
            max_retries=0, timeout=7, api_key="sk-test", base_url="http://localhost:8080/v1"
        )

    @patch('recommender.llm.openai_service.OpenAI')
    def test_missing_credentials_are_a_provider_error(self, mock_openai):
        mock_openai.side_effect = openai.OpenAIError("The api_key client option must be set")
        provider = OpenAIEmbeddingProvider(api_key=None)

        with pytest.raises(EmbeddingProviderError) as embed_exc:
            provider.embed_texts(["a"])
        with pytest.raises(EmbeddingProviderError) as probe_exc:
            provider.probe()

        assert embed_exc.value.retriable is False
        assert probe_exc.value.retriable is False
        assert isinstance(embed_exc.value.cause, openai.OpenAIError)

    def test_provider_version_includes_dimensions(self, provider):
        assert provider.provider_version == "text-embedding-3-large-3072"

    def test_embed_texts_single_request_ordered_by_index(self, provider, client):
        client.embeddings.create.return_value = _embedding_response([1.0, 0.0], [0.0, 1.0], reverse=True)

        vectors = provider.embed_texts(["우울", "불안"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        client.embeddings.create.assert_called_once_with(
            input=["우울", "불안"], model="text-embedding-3-large", dimensions=3072
        )

    def test_count_mismatch_raises(self, provider, client):
        client.embeddings.create.return_value = _embedding_response([1.0])

        with pytest.raises(EmbeddingGenerationError):
            provider.embed_texts(["a", "b"])

    def test_sdk_errors_are_translated(self, provider, client):
        client.embeddings.create.side_effect = _status_error(openai.RateLimitError, 429, {"retry-after": "1"})

        with pytest.raises(RateLimitExceeded) as exc_info:
            provider.embed_texts(["a"])
        assert exc_info.value.retry_after == 1.0

    def test_probe_retrieves_model(self, provider, client):
        assert provider.probe() is True
        client.models.retrieve.assert_called_once_with("text-embedding-3-large")

    def test_probe_failure_is_translated(self, provider, client):
        client.models.retrieve.side_effect = openai.APIConnectionError(request=_request())

        with pytest.raises(EmbeddingProviderError) as exc_info:
            provider.probe()
        assert exc_info.value.operation == "probe"
