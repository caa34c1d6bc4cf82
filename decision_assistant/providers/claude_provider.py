"""Anthropic Claude provider client."""

from __future__ import annotations

from typing import Any

import anthropic
from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from decision_assistant.errors import (
    AuthenticationError,
    ProviderError,
    RateLimitedError,
    TransientError,
)
from decision_assistant.models import ProviderKind
from decision_assistant.providers.base import ProviderClient


def classify_anthropic_error(exc: anthropic.APIError) -> ProviderError:
    """Map an Anthropic SDK error onto the provider error taxonomy."""
    name = ProviderKind.CLAUDE.value
    if isinstance(exc, anthropic.APIStatusError):
        status = exc.status_code
        message = f"Claude API error: {status} - {exc.message}"
        if status == 429:
            return RateLimitedError(message, provider=name, status=status)
        if status in (401, 403):
            return AuthenticationError(message, provider=name, status=status)
        return TransientError(message, provider=name, status=status)
    return TransientError(f"Claude API error: {exc}", provider=name)


class ClaudeProvider(ProviderClient):
    kind = ProviderKind.CLAUDE
    display_name = "Anthropic Claude"
    description = "Anthropic's Claude AI for helpful, harmless, and honest responses"

    async def _complete(
        self,
        prompt: str,
        api_key: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        # SDK retries are disabled; retries are owned by call_with_key_rotation.
        client: AsyncAnthropic = self._client_for(
            api_key, lambda key: AsyncAnthropic(api_key=key, max_retries=0)
        )
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            response = await client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise classify_anthropic_error(exc) from exc

        return "".join(block.text for block in response.content if isinstance(block, TextBlock))
