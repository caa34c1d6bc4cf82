"""Google Gemini provider client."""

from __future__ import annotations

import logging

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from decision_assistant.errors import (
    AuthenticationError,
    ProviderError,
    RateLimitedError,
    TransientError,
)
from decision_assistant.models import ProviderKind
from decision_assistant.providers import prompts
from decision_assistant.providers.base import ProviderClient

logger = logging.getLogger(__name__)


def classify_google_error(exc: google_exceptions.GoogleAPIError) -> ProviderError:
    """Map a google-api-core error onto the provider error taxonomy.

    Gemini reports an invalid key as 400 INVALID_ARGUMENT with an
    "API key not valid" message, so that case is treated as authentication.
    """
    name = ProviderKind.GEMINI.value
    status = getattr(exc, "code", None)
    status = status if isinstance(status, int) else None
    message = f"Gemini API error: {status or ''} - {getattr(exc, 'message', exc)}"

    if isinstance(exc, (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)):
        return RateLimitedError(message, provider=name, status=429)
    if isinstance(exc, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
        return AuthenticationError(message, provider=name, status=status)
    if isinstance(exc, google_exceptions.InvalidArgument) and "api key" in str(exc).lower():
        return AuthenticationError(message, provider=name, status=status)
    return TransientError(message, provider=name, status=status)


class GeminiProvider(ProviderClient):
    kind = ProviderKind.GEMINI
    display_name = "Google Gemini"
    description = "Google's advanced AI model for natural language processing"

    async def _complete(
        self,
        prompt: str,
        api_key: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        # genai keeps the key in module state; concurrent calls may briefly
        # share a key, which only changes which key serves the request.
        genai.configure(api_key=api_key)  # type: ignore[attr-defined]
        model = genai.GenerativeModel(self.model, system_instruction=system)  # type: ignore[attr-defined]
        config = genai.GenerationConfig(  # type: ignore[attr-defined]
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

        try:
            response = await model.generate_content_async(prompt, generation_config=config)
        except google_exceptions.GoogleAPIError as exc:
            raise classify_google_error(exc) from exc

        try:
            return response.text
        except ValueError:
            # Blocked or empty candidate list
            logger.warning("Gemini returned no text candidate")
            return ""

    async def test(self) -> bool:
        """Like the base test, but a rate-limited answer proves the key is valid."""
        if not self.configured():
            return False
        try:
            await self._complete(prompts.TEST_PROMPT, self.pool.current(), max_tokens=10)
        except RateLimitedError:
            logger.info("Gemini test hit rate limit with %s, but API key is valid", self.pool.describe())
            return True
        except ProviderError as exc:
            logger.info("gemini test failed with %s: %s", self.pool.describe(), exc)
            return False
        return True
