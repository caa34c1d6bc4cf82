"""Shared provider client behaviour: per-call key rotation and the three operations.

A concrete provider only implements ``_complete`` (one request with one key,
errors classified into the ``ProviderError`` hierarchy). Everything else,
including the inner retry loop, prompt construction and response
normalisation, is identical across providers.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from decision_assistant.errors import (
    ProviderError,
    RateLimitedError,
    TransientError,
    UnconfiguredError,
)
from decision_assistant.extraction.normalizer import (
    coerce_task_payload,
    normalize_analysis_response,
    normalize_tasks_response,
)
from decision_assistant.models import (
    AnalysisMethod,
    AnalysisResult,
    AnswerResult,
    MeetingRef,
    ProviderDescriptor,
    ProviderKind,
    Provenance,
    TaskCandidate,
    new_task_id,
)
from decision_assistant.providers import prompts
from decision_assistant.providers.credentials import CredentialPool
from decision_assistant.retrieval.ranking import (
    DEFAULT_CONTEXT_LIMIT,
    NO_MEETINGS_CONTEXT,
    rank_meetings,
)

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Delays (seconds) used by the inner, per-call retry loop."""

    rotation_delay: float = 2.0
    rate_limit_backoff: float = 15.0
    transient_backoff: float = 5.0


async def call_with_key_rotation(
    pool: CredentialPool,
    call: Callable[[str], Awaitable[str]],
    policy: RetryPolicy,
    sleep: SleepFn = asyncio.sleep,
) -> str:
    """Invoke ``call(api_key)`` retrying rate limits and transient failures.

    On a 429 the pool is rotated; a successful rotation retries after
    ``policy.rotation_delay``, otherwise the same key is retried after
    ``rate_limit_backoff * attempt``. Transient failures retry with the same
    key after ``transient_backoff * attempt``. Authentication failures are not
    retried here. The loop is bounded at ``pool.size * 2`` attempts and the
    last error is re-raised unchanged.

    Raises:
        UnconfiguredError: The pool holds no keys.
        ProviderError: The final classified failure.
    """
    if not pool.is_configured:
        raise UnconfiguredError(f"{pool.provider} API key not configured")

    def _wait(retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitedError):
            if exc.rotated:
                return policy.rotation_delay
            return policy.rate_limit_backoff * retry_state.attempt_number
        return policy.transient_backoff * retry_state.attempt_number

    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "%s call failed (%s), attempt %d/%d, retrying with %s in %.1fs",
            pool.provider,
            exc,
            retry_state.attempt_number,
            pool.size * 2,
            pool.describe(),
            delay,
        )

    retrying = AsyncRetrying(
        retry=retry_if_exception_type((RateLimitedError, TransientError)),
        stop=stop_after_attempt(pool.size * 2),
        wait=_wait,
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            try:
                return await call(pool.current())
            except RateLimitedError as exc:
                exc.rotated = pool.rotate()
                raise
    raise AssertionError("unreachable")  # pragma: no cover


class ProviderClient(ABC):
    """Uniform capability interface over one remote text-generation service."""

    kind: ProviderKind
    display_name: str
    description: str

    def __init__(
        self,
        pool: CredentialPool,
        model: str,
        policies: dict[str, RetryPolicy] | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.pool = pool
        self.model = model
        self.policies = policies or {}
        self._sleep = sleep
        self._sdk_clients: dict[str, Any] = {}

    def _client_for(self, api_key: str, factory: Callable[[str], Any]) -> Any:
        """Return the SDK client bound to ``api_key``, building it on first use."""
        client = self._sdk_clients.get(api_key)
        if client is None:
            client = self._sdk_clients[api_key] = factory(api_key)
        return client

    @property
    def name(self) -> str:
        return self.kind.value

    def configured(self) -> bool:
        return self.pool.is_configured

    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            name=self.name,
            display_name=self.display_name,
            description=self.description,
            configured=self.configured(),
            key_count=self.pool.size,
        )

    @abstractmethod
    async def _complete(
        self,
        prompt: str,
        api_key: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        """Send one request with ``api_key`` and return the generated text.

        Implementations must raise ``RateLimitedError``, ``AuthenticationError``
        or ``TransientError`` for failures.
        """

    def _policy(self, operation: str) -> RetryPolicy:
        return self.policies.get(operation, RetryPolicy())

    async def _generate(
        self,
        operation: str,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> str:
        async def _call(api_key: str) -> str:
            return await self._complete(
                prompt,
                api_key,
                system=system,
                max_tokens=max_tokens,
                temperature=temperature,
            )

        return await call_with_key_rotation(self.pool, _call, self._policy(operation), self._sleep)

    async def test(self) -> bool:
        """Cheap round-trip with the current key; never raises."""
        if not self.configured():
            return False
        try:
            await self._complete(prompts.TEST_PROMPT, self.pool.current(), max_tokens=10)
        except ProviderError as exc:
            logger.info("%s test failed with %s: %s", self.name, self.pool.describe(), exc)
            return False
        return True

    def _require_configured(self) -> None:
        if not self.configured():
            raise UnconfiguredError(f"{self.display_name} API key not configured")

    async def ask_question(self, question: str, meetings: list[MeetingRef]) -> AnswerResult:
        """Answer ``question`` from the most relevant meetings."""
        self._require_configured()
        related = rank_meetings(question, meetings, limit=DEFAULT_CONTEXT_LIMIT)
        text = await self._generate(
            "ask",
            prompts.question_prompt(question, related),
            system=prompts.QA_SYSTEM_PROMPT,
            max_tokens=1024,
            temperature=0.7,
        )
        return AnswerResult(
            answer=text.strip() or prompts.NO_ANSWER,
            related_meetings=related[:3],
            has_revisions=any(m.is_revision for m in related),
            provider_used=self.name,
        )

    async def analyze_meeting(self, meeting: MeetingRef) -> AnalysisResult:
        """Extract important tasks from a single meeting."""
        self._require_configured()
        text = await self._generate(
            "analyze",
            prompts.analysis_prompt(meeting),
            system=prompts.ANALYSIS_SYSTEM_PROMPT,
            max_tokens=1024,
            temperature=0.3,
        )
        parsed = normalize_analysis_response(text)

        tasks: list[TaskCandidate] = []
        for raw in parsed["tasks"]:
            fields = coerce_task_payload(raw)
            if fields is None:
                continue
            tasks.append(self._to_candidate(fields, meeting, prefix="analyze"))

        return AnalysisResult(
            tasks=tasks,
            total_meetings_considered=1,
            summary=parsed["summary"],
            method=AnalysisMethod.AI,
            provider_used=self.name,
            has_important_tasks=parsed["has_important_tasks"] or bool(tasks),
            degraded=parsed["degraded"],
        )

    async def extract_important_tasks(self, meetings: list[MeetingRef]) -> AnalysisResult:
        """Extract at most eight critical tasks across ``meetings``, best first."""
        self._require_configured()
        if not meetings:
            return AnalysisResult(
                tasks=[],
                total_meetings_considered=0,
                summary=NO_MEETINGS_CONTEXT,
                method=AnalysisMethod.AI,
                provider_used=self.name,
            )

        logger.info("%s extracting tasks from %d meetings", self.name, len(meetings))
        text = await self._generate(
            "extract",
            prompts.important_tasks_prompt(meetings),
            system=prompts.ANALYSIS_SYSTEM_PROMPT,
            max_tokens=2048,
            temperature=0.1,
        )
        parsed = normalize_tasks_response(text)

        tasks: list[TaskCandidate] = []
        for raw in parsed["tasks"]:
            fields = coerce_task_payload(raw)
            if fields is None:
                continue
            meeting = _attribute_meeting(fields, meetings)
            tasks.append(self._to_candidate(fields, meeting, prefix="ai-task"))
            if len(tasks) == prompts.MAX_BATCH_TASKS:
                break

        summary = parsed["summary"] or (
            f"AI analizi ile {len(meetings)} toplantıdan {len(tasks)} kritik görev çıkarıldı."
        )
        return AnalysisResult(
            tasks=tasks,
            total_meetings_considered=len(meetings),
            summary=summary,
            method=AnalysisMethod.AI,
            provider_used=self.name,
            degraded=parsed["degraded"],
        )

    @staticmethod
    def _to_candidate(fields: dict, meeting: MeetingRef, prefix: str) -> TaskCandidate:
        return TaskCandidate(
            id=new_task_id(prefix),
            title=fields["title"],
            description=fields["description"],
            priority=fields["priority"],
            is_urgent=fields["is_urgent"],
            deadline=fields["deadline"],
            category=fields["category"],
            meeting_date=meeting.date,
            meeting_topic=meeting.topic,
            provenance=Provenance.AI,
        )


def _attribute_meeting(fields: dict, meetings: list[MeetingRef]) -> MeetingRef:
    """Pick the meeting a model-extracted task belongs to.

    Tasks are matched on the topic the model echoed back (exact, then
    case-insensitive containment), then on the date; otherwise the first
    meeting is used so the cascade-on-delete key always names a real meeting.
    """
    topic = (fields.get("meeting_topic") or "").strip()
    meeting_date = (fields.get("meeting_date") or "").strip()
    if topic:
        for meeting in meetings:
            if meeting.topic == topic:
                return meeting
        lowered = topic.lower()
        for meeting in meetings:
            if lowered in meeting.topic.lower() or meeting.topic.lower() in lowered:
                return meeting
    if meeting_date:
        for meeting in meetings:
            if meeting.date[:10] == meeting_date[:10]:
                return meeting
    return meetings[0]
