"""Lazily constructed, cached provider clients keyed by the closed ``ProviderKind`` set."""

from __future__ import annotations

import asyncio

from decision_assistant.config import Settings
from decision_assistant.errors import InvalidArgumentError
from decision_assistant.models import PROVIDER_PRIORITY, ProviderDescriptor, ProviderKind
from decision_assistant.providers.base import ProviderClient, RetryPolicy, SleepFn
from decision_assistant.providers.claude_provider import ClaudeProvider
from decision_assistant.providers.credentials import (
    CredentialPool,
    CredentialSource,
    SettingsCredentialSource,
)
from decision_assistant.providers.gemini_provider import GeminiProvider
from decision_assistant.providers.openai_provider import OpenAIProvider


def retry_policies(settings: Settings) -> dict[str, RetryPolicy]:
    """Per-operation inner retry delays built from settings."""
    return {
        "ask": RetryPolicy(
            rotation_delay=settings.rotation_delay_seconds,
            rate_limit_backoff=settings.ask_backoff_seconds,
            transient_backoff=settings.ask_backoff_seconds / 3,
        ),
        "analyze": RetryPolicy(
            rotation_delay=settings.rotation_delay_seconds,
            rate_limit_backoff=settings.analyze_backoff_seconds,
            transient_backoff=settings.analyze_backoff_seconds / 3,
        ),
        "extract": RetryPolicy(
            rotation_delay=settings.rotation_delay_seconds,
            rate_limit_backoff=settings.extract_backoff_seconds,
            transient_backoff=settings.extract_backoff_seconds / 3,
        ),
    }


def parse_provider(name: str) -> ProviderKind:
    """Resolve a provider name, rejecting anything outside the supported set."""
    try:
        return ProviderKind(name.strip().lower())
    except ValueError:
        supported = ", ".join(k.value for k in ProviderKind)
        raise InvalidArgumentError(
            f"Unknown AI provider: {name}. Supported providers: {supported}."
        ) from None


class ProviderRegistry:
    """Owns one client (and its credential pool) per provider kind."""

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialSource | None = None,
        sleep: SleepFn = asyncio.sleep,
        clients: dict[ProviderKind, ProviderClient] | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials or SettingsCredentialSource(settings)
        self._sleep = sleep
        self._clients: dict[ProviderKind, ProviderClient] = dict(clients or {})

    def get(self, kind: ProviderKind) -> ProviderClient:
        if kind not in self._clients:
            self._clients[kind] = self._create(kind)
        return self._clients[kind]

    def _create(self, kind: ProviderKind) -> ProviderClient:
        pool = CredentialPool(kind.value, self._credentials.keys_for(kind))
        policies = retry_policies(self._settings)
        match kind:
            case ProviderKind.GEMINI:
                return GeminiProvider(pool, self._settings.gemini_model, policies, self._sleep)
            case ProviderKind.OPENAI:
                return OpenAIProvider(pool, self._settings.openai_model, policies, self._sleep)
            case ProviderKind.CLAUDE:
                return ClaudeProvider(pool, self._settings.llm_model, policies, self._sleep)

    def all(self) -> list[ProviderClient]:
        return [self.get(kind) for kind in PROVIDER_PRIORITY]

    def descriptors(self) -> list[ProviderDescriptor]:
        return [client.descriptor() for client in self.all()]

    def any_configured(self) -> bool:
        return any(client.configured() for client in self.all())
