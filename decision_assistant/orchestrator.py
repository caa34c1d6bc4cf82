"""Provider selection and the outer, per-operation retry loop.

The orchestrator picks the first configured provider that passes its
connectivity test (preferred provider first, then the fixed priority order),
runs the requested operation on it, and retries the whole
selection-plus-operation sequence a bounded number of times. Per-call
credential rotation happens one layer down, inside the provider client.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_not_exception_type, stop_after_attempt

from decision_assistant.errors import (
    InvalidArgumentError,
    NoWorkingProviderError,
    OperationTimeoutError,
    ProviderError,
    RateLimitedError,
    UnconfiguredError,
)
from decision_assistant.models import PROVIDER_PRIORITY, ProviderKind
from decision_assistant.providers.base import ProviderClient, SleepFn
from decision_assistant.providers.registry import ProviderRegistry, parse_provider

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNCONFIGURED_MESSAGE = (
    "AI servisi kullanmak için önce ayarlar sayfasından API anahtarı eklemeniz gerekiyor."
)
NO_WORKING_PROVIDER_MESSAGE = (
    "No working AI provider available. Please configure API keys in settings."
)


@dataclass(frozen=True)
class OrchestratorConfig:
    """Outer retry loop constants."""

    max_attempts: int = 3
    base_backoff_ms: int = 1000
    max_backoff_ms: int = 10000
    timeout_seconds: float | None = None


def rate_limit_backoff(attempt: int, config: OrchestratorConfig) -> float:
    """Seconds to wait after a rate-limited attempt: ``min(base * 2**attempt, max)`` ms."""
    return min(config.base_backoff_ms * 2**attempt, config.max_backoff_ms) / 1000


class FallbackOrchestrator:
    """Runs provider operations with provider fallback and bounded retries."""

    def __init__(
        self,
        registry: ProviderRegistry,
        config: OrchestratorConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.registry = registry
        self.config = config or OrchestratorConfig()
        self._sleep = sleep

    def candidate_order(self, preferred: str | ProviderKind | None = None) -> list[ProviderKind]:
        """Preferred provider first, then the fixed priority order, without duplicates."""
        order: list[ProviderKind] = []
        if preferred:
            order.append(preferred if isinstance(preferred, ProviderKind) else parse_provider(preferred))
        for kind in PROVIDER_PRIORITY:
            if kind not in order:
                order.append(kind)
        return order

    async def select_provider(
        self,
        preferred: str | ProviderKind | None = None,
        exclude: set[ProviderKind] | frozenset[ProviderKind] = frozenset(),
    ) -> ProviderClient:
        """Return the first configured candidate whose ``test()`` succeeds.

        Providers in ``exclude`` are skipped unless that would leave no
        configured candidate at all, in which case every configured provider
        is eligible again.

        Raises:
            UnconfiguredError: No candidate has credentials.
            NoWorkingProviderError: Every configured candidate failed its test.
        """
        candidates = [k for k in self.candidate_order(preferred) if self.registry.get(k).configured()]
        if not candidates:
            raise UnconfiguredError(UNCONFIGURED_MESSAGE)

        eligible = [k for k in candidates if k not in exclude] or candidates
        for kind in self.candidate_order(preferred):
            client = self.registry.get(kind)
            if kind not in eligible:
                logger.info("Provider %s not configured or excluded, skipping", kind.value)
                continue
            if await client.test():
                logger.info("Using provider: %s", kind.value)
                return client
            logger.warning("Provider %s test failed, trying next", kind.value)

        raise NoWorkingProviderError(NO_WORKING_PROVIDER_MESSAGE)

    async def run_with_fallback(
        self,
        operation: Callable[[ProviderClient], Awaitable[T]],
        preferred: str | ProviderKind | None = None,
        timeout: float | None = None,
    ) -> T:
        """Run ``operation`` on a working provider, retrying up to ``max_attempts``.

        Rate-limited failures wait ``rate_limit_backoff(attempt)`` before the
        next attempt; other failures retry immediately. A provider whose
        operation failed is passed over on later attempts so the retry moves
        to the next provider. The final error is re-raised unchanged.

        Raises:
            UnconfiguredError: No provider has credentials (never retried).
            InvalidArgumentError: ``preferred`` is not a supported provider.
            OperationTimeoutError: ``timeout`` elapsed before completion.
        """
        if preferred is not None and not isinstance(preferred, ProviderKind):
            preferred = parse_provider(preferred) if preferred else None
        if not self.registry.any_configured():
            raise UnconfiguredError(UNCONFIGURED_MESSAGE)

        limit = timeout if timeout is not None else self.config.timeout_seconds
        try:
            async with asyncio.timeout(limit):
                return await self._retry_loop(operation, preferred)
        except TimeoutError as exc:
            raise OperationTimeoutError(f"AI operation timed out after {limit}s") from exc

    async def _retry_loop(
        self,
        operation: Callable[[ProviderClient], Awaitable[T]],
        preferred: ProviderKind | None,
    ) -> T:
        failed: set[ProviderKind] = set()

        def _wait(retry_state: RetryCallState) -> float:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            if isinstance(exc, RateLimitedError):
                return rate_limit_backoff(retry_state.attempt_number, self.config)
            return 0

        def _log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0
            logger.warning(
                "Attempt %d/%d failed: %s; retrying in %.1fs",
                retry_state.attempt_number,
                self.config.max_attempts,
                exc,
                delay,
            )

        retrying = AsyncRetrying(
            retry=retry_if_not_exception_type((UnconfiguredError, InvalidArgumentError)),
            stop=stop_after_attempt(self.config.max_attempts),
            wait=_wait,
            sleep=self._sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                provider = await self.select_provider(preferred, exclude=failed)
                try:
                    return await operation(provider)
                except ProviderError:
                    failed.add(provider.kind)
                    raise
        raise AssertionError("unreachable")  # pragma: no cover
