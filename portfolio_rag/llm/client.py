"""
OpenAI chat LLM client.
"""

from __future__ import annotations

from typing import Any, Dict, List

import openai
from openai import OpenAI

from portfolio_rag.config import settings
from portfolio_rag.errors import GenerationFailure, GenerationRateLimited

DEFAULT_LLM_MODEL = settings.llm_model_name
DEFAULT_TEMPERATURE = settings.llm_temperature
DEFAULT_MAX_TOKENS = settings.llm_max_tokens
PROVIDER_NAME = "openai"


class LLMClient:
    def __init__(
        self,
        model: str = DEFAULT_LLM_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = DEFAULT_MAX_TOKENS,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
        self.client = client or OpenAI(api_key=api_key, timeout=settings.request_timeout_sec)

    def chat(self, messages: List[Dict[str, Any]]) -> str:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": messages,
        }
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens

        try:
            response = self.client.chat.completions.create(**kwargs)
        except openai.RateLimitError as exc:
            raise GenerationRateLimited(f"Generation rate limit exceeded: {exc}", provider_name=PROVIDER_NAME) from exc
        except openai.APIError as exc:
            raise GenerationFailure(f"Generation request failed: {exc}", provider_name=PROVIDER_NAME) from exc

        if not response.choices:
            raise GenerationFailure("Generation response had no choices", provider_name=PROVIDER_NAME)
        choice = response.choices[0].message
        return choice.content or ""


__all__ = ["LLMClient", "DEFAULT_LLM_MODEL", "DEFAULT_TEMPERATURE"]
