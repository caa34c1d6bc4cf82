"""Core operations exposed to the host application.

``AssistantService`` wires the provider registry, the fallback orchestrator,
the heuristic extractor, the task ledger and the host's meeting repository
together. HTTP adapters call into this class and nothing below it.
"""

from __future__ import annotations

import logging
from typing import Any

from decision_assistant.config import Settings
from decision_assistant.errors import (
    AssistantError,
    InvalidArgumentError,
    NotFoundError,
    UnconfiguredError,
)
from decision_assistant.extraction.heuristic import HeuristicTaskExtractor, HeuristicThresholds
from decision_assistant.ledger.ledger import TaskLedger
from decision_assistant.ledger.storage import MeetingRepository, build_stores
from decision_assistant.models import (
    AnalysisMethod,
    AnalysisResult,
    AnswerResult,
    CleanupResult,
    MeetingRef,
    Priority,
    ProviderDescriptor,
    TaskCandidate,
    utc_now,
)
from decision_assistant.orchestrator import FallbackOrchestrator, OrchestratorConfig
from decision_assistant.providers import prompts
from decision_assistant.providers.registry import ProviderRegistry, parse_provider
from decision_assistant.retrieval.ranking import NO_MEETINGS_CONTEXT

logger = logging.getLogger(__name__)


def _newest_first(meetings: list[MeetingRef]) -> list[MeetingRef]:
    return sorted(meetings, key=lambda m: m.date, reverse=True)


class AssistantService:
    """Facade over question answering, task extraction and the task ledger."""

    def __init__(
        self,
        settings: Settings,
        registry: ProviderRegistry | None = None,
        orchestrator: FallbackOrchestrator | None = None,
        ledger: TaskLedger | None = None,
        meetings: MeetingRepository | None = None,
        extractor: HeuristicTaskExtractor | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry or ProviderRegistry(settings)
        self.orchestrator = orchestrator or FallbackOrchestrator(
            self.registry,
            OrchestratorConfig(
                max_attempts=settings.outer_max_attempts,
                timeout_seconds=settings.operation_timeout_seconds,
            ),
        )
        if ledger is None or meetings is None:
            task_store, meeting_repo = build_stores(settings)
            ledger = ledger or TaskLedger(task_store)
            meetings = meetings or meeting_repo
        self.ledger = ledger
        self.meetings = meetings
        self.extractor = extractor or HeuristicTaskExtractor(
            HeuristicThresholds(
                min_score=settings.heuristic_min_score,
                medium_threshold=settings.heuristic_medium_threshold,
                high_threshold=settings.heuristic_high_threshold,
                max_tasks=settings.heuristic_max_tasks,
            )
        )

    def _preferred(self, preferred_provider: str | None) -> str:
        return preferred_provider or self.settings.default_ai_provider

    # -- Providers ---------------------------------------------------------

    def configured_providers(self) -> list[ProviderDescriptor]:
        """Every supported provider with its configuration state."""
        return self.registry.descriptors()

    async def test_provider(self, name: str) -> bool:
        """Run a connectivity test against one provider.

        Raises:
            InvalidArgumentError: Unknown provider name.
            UnconfiguredError: The provider has no API key.
        """
        client = self.registry.get(parse_provider(name))
        if not client.configured():
            raise UnconfiguredError(f"{client.display_name} API key not configured")
        return await client.test()

    # -- Questions and analysis --------------------------------------------

    async def ask_question(
        self,
        question: str,
        meetings: list[MeetingRef] | None = None,
        preferred_provider: str | None = None,
    ) -> AnswerResult:
        """Answer a free-form question from the recorded meetings.

        Raises:
            InvalidArgumentError: ``question`` is blank.
            UnconfiguredError: No provider has credentials.
            NoWorkingProviderError: Every configured provider failed.
        """
        if not question or not question.strip():
            raise InvalidArgumentError("Question is required")

        if meetings is None:
            meetings = self.meetings.list_meetings()
        if not meetings:
            return AnswerResult(answer=prompts.NO_MEETINGS_ANSWER, related_meetings=[], has_revisions=False)

        return await self.orchestrator.run_with_fallback(
            lambda provider: provider.ask_question(question.strip(), meetings),
            preferred=self._preferred(preferred_provider),
        )

    async def analyze_meeting(
        self,
        meeting: MeetingRef | str,
        preferred_provider: str | None = None,
    ) -> AnalysisResult:
        """Extract important tasks from one meeting with AI and add them to the ledger.

        Raises:
            NotFoundError: ``meeting`` is an id the repository does not know.
        """
        if isinstance(meeting, str):
            found = self.meetings.get(meeting)
            if found is None:
                raise NotFoundError(f"Meeting not found: {meeting}")
            meeting = found

        target = meeting
        result = await self.orchestrator.run_with_fallback(
            lambda provider: provider.analyze_meeting(target),
            preferred=self._preferred(preferred_provider),
        )
        if result.tasks:
            added = self.ledger.merge_new(result.tasks)
            result.added_tasks_count = len(added)
        return result

    # -- Important tasks ---------------------------------------------------

    async def extract_important_tasks(
        self,
        meetings: list[MeetingRef] | None = None,
        preferred_provider: str | None = None,
    ) -> AnalysisResult:
        """Return the active important tasks, extracting from new meetings first.

        An empty ledger analyses every meeting and replaces the active set; a
        populated ledger analyses only meetings not yet flagged as analyzed
        and merges what it finds; otherwise the stored tasks are returned.
        AI extraction is tried first and the heuristic extractor takes over
        when it fails or its output could not be parsed. The ledger and the
        analyzed flags are only written after extraction has finished.

        Raises:
            UnconfiguredError: No provider has credentials.
        """
        if not self.registry.any_configured():
            raise UnconfiguredError(
                "AI servisi kullanmak için önce ayarlar sayfasından API anahtarı eklemeniz gerekiyor."
            )

        all_meetings = meetings if meetings is not None else self.meetings.list_meetings()
        if not all_meetings:
            return AnalysisResult(
                tasks=[],
                total_meetings_considered=0,
                summary=NO_MEETINGS_CONTEXT,
                method=AnalysisMethod.CACHED,
            )

        bootstrap = self.ledger.is_empty()
        if bootstrap:
            to_analyze = all_meetings
            logger.info("Initial load: analyzing all %d meetings", len(to_analyze))
        else:
            to_analyze = [m for m in all_meetings if not m.task_analyzed]
            if not to_analyze:
                active = self.ledger.active()
                logger.info("All meetings already analyzed, returning %d stored tasks", len(active))
                return AnalysisResult(
                    tasks=active,
                    total_meetings_considered=len(all_meetings),
                    summary=(
                        f"Tüm {len(all_meetings)} toplantı zaten analiz edilmiş. "
                        f"Mevcut {len(active)} aktif görev döndürülüyor."
                    ),
                    method=AnalysisMethod.CACHED,
                )
            logger.info("Analyzing %d new meetings", len(to_analyze))

        to_analyze = _newest_first(to_analyze)
        found, method, provider_used = await self._extract(to_analyze, preferred_provider)

        if bootstrap:
            stored = self.ledger.replace_all(found)
            added_count = len(stored)
            marked = all_meetings
        else:
            added_count = len(self.ledger.merge_new(found))
            marked = to_analyze
        self.meetings.mark_analyzed([m.id for m in marked], utc_now().isoformat())

        active = self.ledger.active()
        label = "AI analizi" if method is AnalysisMethod.AI else "Metin analizi"
        if bootstrap:
            summary = f"{label} ile {len(all_meetings)} toplantıdan {len(active)} görev çıkarıldı."
        else:
            summary = (
                f"{label} ile {len(to_analyze)} yeni toplantıdan {added_count} yeni görev eklendi. "
                f"Toplam {len(active)} aktif görev."
            )
        return AnalysisResult(
            tasks=active,
            total_meetings_considered=len(all_meetings),
            summary=summary,
            method=method,
            provider_used=provider_used,
            has_important_tasks=bool(active),
            added_tasks_count=added_count,
        )

    async def _extract(
        self,
        meetings: list[MeetingRef],
        preferred_provider: str | None,
    ) -> tuple[list[TaskCandidate], AnalysisMethod, str | None]:
        try:
            result = await self.orchestrator.run_with_fallback(
                lambda provider: provider.extract_important_tasks(meetings),
                preferred=self._preferred(preferred_provider),
            )
        except UnconfiguredError:
            raise
        except AssistantError as exc:
            logger.warning("AI task extraction failed, falling back to text analysis: %s", exc)
        except Exception:
            logger.exception("Unexpected AI task extraction failure, falling back to text analysis")
        else:
            if not result.degraded:
                logger.info("AI extracted %d tasks via %s", len(result.tasks), result.provider_used)
                return result.tasks, AnalysisMethod.AI, result.provider_used
            logger.warning("AI task extraction returned unparseable output, falling back to text analysis")

        return self.extractor.extract(meetings), AnalysisMethod.TEXT, None

    # -- Ledger ------------------------------------------------------------

    def active_tasks(self) -> list[TaskCandidate]:
        return self.ledger.active()

    def complete_task(self, task_id: str) -> TaskCandidate:
        return self.ledger.complete(task_id)

    def update_task_priority(self, task_id: str, priority: str | Priority) -> TaskCandidate:
        return self.ledger.update_priority(task_id, priority)

    def completed_tasks(self) -> dict[str, dict[str, dict[str, Any]]]:
        return self.ledger.completed_grouped()

    def delete_completed_task(self, task_id: str) -> TaskCandidate:
        return self.ledger.delete_completed(task_id)

    def cleanup_for_deleted_meeting(self, meeting: MeetingRef) -> CleanupResult:
        return self.ledger.cleanup_for_deleted_meeting(meeting)

    def cleanup_by_topics(self, topics: list[str]) -> CleanupResult:
        return self.ledger.cleanup_by_topics(topics)


def build_service(settings: Settings) -> AssistantService:
    """Construct the service from settings with the configured storage backend."""
    return AssistantService(settings)
