"""Unit tests for the OpenAI embedding and generation adapters."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from portfolio_rag.embeddings.client import EmbeddingsClient
from portfolio_rag.errors import EmbeddingFailure, GenerationFailure, RateLimited, ValidationError
from portfolio_rag.llm.client import LLMClient

OPENAI_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _embedding_response(vectors):
    return SimpleNamespace(data=[SimpleNamespace(embedding=v) for v in vectors])


def _rate_limit_error() -> openai.RateLimitError:
    return openai.RateLimitError(
        "Rate limit reached",
        response=httpx.Response(429, request=OPENAI_REQUEST),
        body=None,
    )


@pytest.fixture
def openai_mock() -> MagicMock:
    return MagicMock()


class TestEmbeddingsClient:
    def test_embed_text_returns_vector(self, openai_mock):
        openai_mock.embeddings.create.return_value = _embedding_response([[0.1, 0.2, 0.3]])
        client = EmbeddingsClient(model="test-model", client=openai_mock)

        assert client.embed_text("  drone autopilot  ") == [0.1, 0.2, 0.3]
        openai_mock.embeddings.create.assert_called_once_with(model="test-model", input=["drone autopilot"])

    def test_batches_requests(self, openai_mock):
        openai_mock.embeddings.create.side_effect = [
            _embedding_response([[1.0], [2.0]]),
            _embedding_response([[3.0]]),
        ]
        client = EmbeddingsClient(batch_size=2, client=openai_mock)

        assert client.embed_texts(["a", "b", "c"]) == [[1.0], [2.0], [3.0]]
        assert openai_mock.embeddings.create.call_count == 2

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_text_rejected_without_calling_provider(self, openai_mock, text):
        client = EmbeddingsClient(client=openai_mock)

        with pytest.raises(ValidationError):
            client.embed_text(text)
        openai_mock.embeddings.create.assert_not_called()

    def test_long_text_truncated_with_warning(self, openai_mock, caplog):
        openai_mock.embeddings.create.return_value = _embedding_response([[1.0, 0.0]])
        client = EmbeddingsClient(max_chars=10, client=openai_mock)

        with caplog.at_level(logging.WARNING, logger="portfolio_rag.embeddings.client"):
            client.embed_text("x" * 50)

        sent = openai_mock.embeddings.create.call_args.kwargs["input"]
        assert sent == ["x" * 10]
        assert "Truncating text before embedding" in caplog.text

    def test_rate_limit_maps_to_rate_limited(self, openai_mock):
        openai_mock.embeddings.create.side_effect = _rate_limit_error()
        client = EmbeddingsClient(client=openai_mock)

        with pytest.raises(RateLimited) as excinfo:
            client.embed_text("hello")
        assert isinstance(excinfo.value, EmbeddingFailure)
        assert not isinstance(excinfo.value, GenerationFailure)
        assert excinfo.value.provider_name == "openai"

    def test_connection_error_maps_to_embedding_failure(self, openai_mock):
        openai_mock.embeddings.create.side_effect = openai.APIConnectionError(request=OPENAI_REQUEST)
        client = EmbeddingsClient(client=openai_mock)

        with pytest.raises(EmbeddingFailure) as excinfo:
            client.embed_text("hello")
        assert not isinstance(excinfo.value, RateLimited)

    def test_empty_vector_is_failure(self, openai_mock):
        openai_mock.embeddings.create.return_value = _embedding_response([[]])
        client = EmbeddingsClient(client=openai_mock)

        with pytest.raises(EmbeddingFailure):
            client.embed_text("hello")


class TestLLMClient:
    def test_chat_returns_content(self, openai_mock):
        message = SimpleNamespace(content="The autopilot uses PID control.")
        openai_mock.chat.completions.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])
        client = LLMClient(model="gpt-test", temperature=0.2, max_tokens=100, client=openai_mock)

        answer = client.chat([{"role": "user", "content": "hi"}])

        assert answer == "The autopilot uses PID control."
        kwargs = openai_mock.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["max_tokens"] == 100
        assert "response_format" not in kwargs

    def test_rate_limit_maps_to_rate_limited(self, openai_mock):
        openai_mock.chat.completions.create.side_effect = _rate_limit_error()
        client = LLMClient(client=openai_mock)

        with pytest.raises(RateLimited) as excinfo:
            client.chat([{"role": "user", "content": "hi"}])
        assert isinstance(excinfo.value, GenerationFailure)
        assert not isinstance(excinfo.value, EmbeddingFailure)

    def test_api_error_maps_to_generation_failure(self, openai_mock):
        openai_mock.chat.completions.create.side_effect = openai.APIConnectionError(request=OPENAI_REQUEST)
        client = LLMClient(client=openai_mock)

        with pytest.raises(GenerationFailure):
            client.chat([{"role": "user", "content": "hi"}])
