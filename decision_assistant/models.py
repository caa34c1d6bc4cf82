"""Core data models: meetings, task candidates, analysis and answer results."""

from __future__ import annotations

import itertools
import secrets
import string
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

TITLE_MAX_LENGTH = 60


class ProviderKind(StrEnum):
    """Supported remote text-generation services, in fallback priority order."""

    GEMINI = "gemini"
    OPENAI = "openai"
    CLAUDE = "claude"


PROVIDER_PRIORITY: tuple[ProviderKind, ...] = (
    ProviderKind.GEMINI,
    ProviderKind.OPENAI,
    ProviderKind.CLAUDE,
)


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK: dict[Priority, int] = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class Category(StrEnum):
    ACTION = "action"
    REMINDER = "reminder"
    DEADLINE = "deadline"


class Provenance(StrEnum):
    """Which extraction path produced a task."""

    AI = "ai"
    HEURISTIC = "heuristic"


class AnalysisMethod(StrEnum):
    AI = "ai"
    TEXT = "text"
    CACHED = "cached"


def utc_now() -> datetime:
    return datetime.now(UTC)


_id_counter = itertools.count()
_id_lock = threading.Lock()
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def new_task_id(prefix: str = "task") -> str:
    """Return ``<prefix>-<epoch ms>-<counter>-<random suffix>``.

    The counter is process-wide so two ids minted in the same millisecond
    still differ; the suffix guards against collisions across restarts.
    """
    with _id_lock:
        counter = next(_id_counter)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{counter:04d}-{suffix}"


@dataclass(frozen=True)
class MeetingRef:
    """Read-only view of a meeting record supplied by the host."""

    id: str
    date: str
    topic: str
    decision_text: str
    notes: str | None = None
    tags: str | None = None
    revised_from_id: str | None = None
    revised_from_topic: str | None = None
    revised_from_date: str | None = None
    revised_from_decision: str | None = None
    task_analyzed: bool = False
    task_analyzed_at: str | None = None

    @property
    def is_revision(self) -> bool:
        return self.revised_from_id is not None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MeetingRef:
        """Build from a stored row; accepts ``decision`` as an alias of ``decision_text``."""
        tags = data.get("tags")
        if isinstance(tags, list):
            tags = ", ".join(str(t) for t in tags)
        revised_from = data.get("revised_from_id")
        return cls(
            id=str(data.get("id") or data.get("uuid") or ""),
            date=str(data.get("date", "")),
            topic=str(data.get("topic", "")),
            decision_text=str(data.get("decision_text") or data.get("decision") or ""),
            notes=data.get("notes") or None,
            tags=tags or None,
            revised_from_id=str(revised_from) if revised_from is not None else None,
            revised_from_topic=data.get("revised_from_topic"),
            revised_from_date=data.get("revised_from_date"),
            revised_from_decision=data.get("revised_from_decision"),
            task_analyzed=bool(data.get("task_analyzed", False)),
            task_analyzed_at=data.get("task_analyzed_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TaskCandidate:
    """A proposed actionable item extracted from meeting text.

    Immutable once emitted; ledger changes produce a new instance via
    ``dataclasses.replace``.
    """

    id: str
    title: str
    description: str
    priority: Priority
    is_urgent: bool
    category: Category
    meeting_date: str
    meeting_topic: str
    provenance: Provenance
    deadline: date | None = None
    score: int | None = None
    created_at: str = field(default_factory=lambda: utc_now().isoformat())
    completed_at: str | None = None

    def belongs_to(self, meeting_date: str, meeting_topic: str) -> bool:
        return self.meeting_date == meeting_date and self.meeting_topic == meeting_topic

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["priority"] = self.priority.value
        data["category"] = self.category.value
        data["provenance"] = self.provenance.value
        data["deadline"] = self.deadline.isoformat() if self.deadline else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskCandidate:
        deadline = data.get("deadline")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            priority=Priority(data.get("priority", Priority.MEDIUM)),
            is_urgent=bool(data.get("is_urgent", False)),
            category=Category(data.get("category", Category.ACTION)),
            meeting_date=str(data.get("meeting_date", "")),
            meeting_topic=str(data.get("meeting_topic", "")),
            provenance=Provenance(data.get("provenance", Provenance.HEURISTIC)),
            deadline=date.fromisoformat(deadline) if deadline else None,
            score=data.get("score"),
            created_at=str(data.get("created_at") or utc_now().isoformat()),
            completed_at=data.get("completed_at"),
        )


@dataclass
class AnalysisResult:
    """Outcome of a single-meeting analysis or a batch task extraction."""

    tasks: list[TaskCandidate]
    total_meetings_considered: int
    summary: str
    method: AnalysisMethod
    analyzed_at: str = field(default_factory=lambda: utc_now().isoformat())
    provider_used: str | None = None
    has_important_tasks: bool = False
    added_tasks_count: int = 0
    # True when the model output could not be parsed and tasks is the empty sentinel
    degraded: bool = False


@dataclass
class AnswerResult:
    """Answer to a free-form question about past meeting decisions."""

    answer: str
    related_meetings: list[MeetingRef]
    has_revisions: bool
    provider_used: str | None = None


@dataclass(frozen=True)
class ProviderDescriptor:
    """Identity and capabilities of one provider, as exposed to callers."""

    name: str
    display_name: str
    description: str
    configured: bool
    key_count: int = 0
    can_answer: bool = True
    can_analyze: bool = True
    can_extract_tasks: bool = True


@dataclass(frozen=True)
class CleanupResult:
    """Counts reported after cascading task removal."""

    removed_active: int
    removed_completed: int
    remaining_active: int
    remaining_completed: int
