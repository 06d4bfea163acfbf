"""Provider error types and upstream error enrichment."""

from __future__ import annotations

import openai

from proxim8.core.errors import Proxim8Error


class ProviderError(Proxim8Error):
    """Raised when an upstream AI or data provider fails.

    Attributes:
        provider: Provider name (e.g. "openai", "veo")
        suggestion: Human-readable hint for resolving the error
        retryable: Whether retrying the same call may succeed
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        suggestion: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.suggestion = suggestion
        self.retryable = retryable

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}. Suggestion: {self.suggestion}"
        return self.message


class ContentPolicyError(ProviderError):
    """Request was rejected by the provider's safety system."""


class InvalidRequestError(ProviderError):
    """Request parameters were rejected."""


class RateLimitError(ProviderError):
    """Provider rate limit or quota exceeded."""


class UpstreamServerError(ProviderError):
    """Provider returned a server-side error."""


class ProviderTimeoutError(ProviderError):
    """Provider call timed out or the connection failed."""


def _openai_error_code(exc: openai.APIStatusError) -> str | None:
    code = getattr(exc, "code", None)
    if code:
        return str(code)
    body = exc.body if isinstance(exc.body, dict) else {}
    error = body.get("error", body)
    if isinstance(error, dict):
        return error.get("code") or error.get("type")
    return None


def enrich_openai_error(exc: Exception) -> ProviderError:
    """Map an OpenAI SDK exception to a ProviderError with a suggestion.

    Args:
        exc: Exception raised by the openai client

    Returns:
        ProviderError subclass describing the failure
    """
    if isinstance(exc, ProviderError):
        return exc

    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(
            f"OpenAI rate limit exceeded: {exc.message}",
            provider="openai",
            suggestion="Wait a moment and retry, or check the account's usage limits",
            retryable=True,
        )

    if isinstance(exc, openai.InternalServerError):
        return UpstreamServerError(
            f"OpenAI server error: {exc.message}",
            provider="openai",
            suggestion="The service is having problems; retry in a few minutes",
            retryable=True,
        )

    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError)):
        return ProviderTimeoutError(
            f"OpenAI connection failed: {exc}",
            provider="openai",
            suggestion="Check network connectivity and retry",
            retryable=True,
        )

    if isinstance(exc, openai.APIStatusError):
        code = _openai_error_code(exc)
        message = exc.message
        if code == "content_policy_violation" or "safety system" in message.lower():
            return ContentPolicyError(
                f"Content policy violation: {message}",
                provider="openai",
                suggestion="Rephrase the prompt to avoid violent, political or copyrighted content",
            )
        if isinstance(exc, openai.BadRequestError) or code == "invalid_request_error":
            param = getattr(exc, "param", None)
            lowered = message.lower()
            if param == "size" or "size" in lowered:
                suggestion = "Use a supported size: 1024x1024, 1024x1536 or 1536x1024"
            elif param == "prompt" or "prompt" in lowered:
                suggestion = "Shorten or simplify the prompt"
            elif param:
                suggestion = f"Check the '{param}' parameter"
            else:
                suggestion = "Check the request parameters"
            return InvalidRequestError(
                f"Invalid request: {message}", provider="openai", suggestion=suggestion
            )
        if exc.status_code in (401, 403):
            return ProviderError(
                f"OpenAI authentication failed: {message}",
                provider="openai",
                suggestion="Check OPENAI_API_KEY",
            )
        return ProviderError(f"OpenAI error ({exc.status_code}): {message}", provider="openai")

    return ProviderError(f"Provider error: {exc}", provider="openai")
