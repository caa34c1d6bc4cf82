"""OpenAI chat completions provider client."""

from __future__ import annotations

import openai
from openai import AsyncOpenAI

from decision_assistant.errors import (
    AuthenticationError,
    ProviderError,
    RateLimitedError,
    TransientError,
)
from decision_assistant.models import ProviderKind
from decision_assistant.providers.base import ProviderClient


def classify_openai_error(exc: openai.APIError) -> ProviderError:
    """Map an OpenAI SDK error onto the provider error taxonomy."""
    name = ProviderKind.OPENAI.value
    if isinstance(exc, openai.APIStatusError):
        status = exc.status_code
        message = f"OpenAI API error: {status} - {exc.message}"
        if status == 429:
            return RateLimitedError(message, provider=name, status=status)
        if status in (401, 403):
            return AuthenticationError(message, provider=name, status=status)
        return TransientError(message, provider=name, status=status)
    return TransientError(f"OpenAI API error: {exc}", provider=name)


class OpenAIProvider(ProviderClient):
    kind = ProviderKind.OPENAI
    display_name = "OpenAI GPT"
    description = "OpenAI's GPT models for advanced language understanding"

    async def _complete(
        self,
        prompt: str,
        api_key: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        client: AsyncOpenAI = self._client_for(api_key, lambda key: AsyncOpenAI(api_key=key, max_retries=0))
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.APIError as exc:
            raise classify_openai_error(exc) from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
