"""Prompt enhancement text models (Gemini and OpenAI)."""

from __future__ import annotations

import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from openai import AsyncOpenAI
import openai

from proxim8.core.providers.base import ProviderType, TextGenerationOptions
from proxim8.core.providers.errors import (
    ContentPolicyError,
    ProviderError,
    RateLimitError,
    UpstreamServerError,
    enrich_openai_error,
)

logger = logging.getLogger(__name__)


def _enrich_genai_error(exc: genai_errors.APIError) -> ProviderError:
    message = exc.message or str(exc)
    if exc.code == 429:
        return RateLimitError(
            f"Gemini quota exceeded: {message}",
            provider="gemini",
            suggestion="Wait a moment and retry",
            retryable=True,
        )
    if isinstance(exc, genai_errors.ServerError):
        return UpstreamServerError(
            f"Gemini server error: {message}", provider="gemini", retryable=True
        )
    return ProviderError(f"Gemini error ({exc.code}): {message}", provider="gemini")


class GeminiPromptModel:
    """Prompt model backed by the Gemini API (google-genai)."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gemini-2.0-flash",
        client: genai.Client | None = None,
    ):
        self._client = client or genai.Client(api_key=api_key)
        self._model = model

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GEMINI

    async def generate_text(
        self,
        system_instruction: str,
        prompt: str,
        options: TextGenerationOptions,
    ) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_instruction,
                    temperature=options.temperature,
                    top_p=options.top_p,
                    max_output_tokens=options.max_output_tokens,
                ),
            )
        except genai_errors.APIError as e:
            raise _enrich_genai_error(e) from e

        text = (response.text or "").strip()
        if not text:
            feedback = getattr(response, "prompt_feedback", None)
            if feedback is not None and getattr(feedback, "block_reason", None):
                raise ContentPolicyError(
                    f"Prompt blocked: {feedback.block_reason}",
                    provider="gemini",
                    suggestion="Rephrase the prompt to avoid disallowed content",
                )
            raise ProviderError("Empty response from Gemini API", provider="gemini")
        return text


class OpenAIPromptModel:
    """Prompt model backed by the OpenAI Responses API."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str = "gpt-4.1-mini",
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ):
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)
        self._model = model

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.OPENAI

    async def generate_text(
        self,
        system_instruction: str,
        prompt: str,
        options: TextGenerationOptions,
    ) -> str:
        try:
            response = await self._client.responses.create(
                model=self._model,
                instructions=system_instruction,
                input=prompt,
                temperature=options.temperature,
                top_p=options.top_p,
                max_output_tokens=options.max_output_tokens,
            )
        except openai.OpenAIError as e:
            raise enrich_openai_error(e) from e

        text = (response.output_text or "").strip()
        if not text:
            raise ProviderError("Empty response from OpenAI API", provider="openai")
        return text
