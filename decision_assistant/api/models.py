"""Pydantic request/response schemas for the decision assistant API."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from decision_assistant.models import (
    AnalysisResult,
    AnswerResult,
    CleanupResult,
    MeetingRef,
    Priority,
    ProviderDescriptor,
    TaskCandidate,
)


class ProviderInfo(BaseModel):
    """A provider as listed by /api/ai/providers; never carries key material."""

    name: str
    display_name: str
    description: str
    configured: bool
    key_count: int = 0
    can_answer: bool = True
    can_analyze: bool = True
    can_extract_tasks: bool = True

    @classmethod
    def from_descriptor(cls, descriptor: ProviderDescriptor) -> ProviderInfo:
        return cls(**descriptor.__dict__)


class ProvidersResponse(BaseModel):
    providers: list[ProviderInfo]
    default_provider: str


class ProviderTestRequest(BaseModel):
    provider: str


class ProviderTestResponse(BaseModel):
    provider: str
    success: bool
    message: str


class AskRequest(BaseModel):
    """Request body for the /api/ai/ask endpoint."""

    question: str
    provider: str | None = None


class MeetingInfo(BaseModel):
    """Meeting fields echoed back as answer context."""

    id: str
    date: str
    topic: str
    decision_text: str
    notes: str | None = None
    tags: str | None = None
    revised_from_id: str | None = None
    revised_from_topic: str | None = None
    revised_from_date: str | None = None

    @classmethod
    def from_meeting(cls, meeting: MeetingRef) -> MeetingInfo:
        return cls.model_validate(meeting.to_dict())


class AskResponse(BaseModel):
    """Response body for the /api/ai/ask endpoint."""

    answer: str
    related_meetings: list[MeetingInfo]
    has_revisions: bool
    provider_used: str | None = None

    @classmethod
    def from_result(cls, result: AnswerResult) -> AskResponse:
        return cls(
            answer=result.answer,
            related_meetings=[MeetingInfo.from_meeting(m) for m in result.related_meetings],
            has_revisions=result.has_revisions,
            provider_used=result.provider_used,
        )


class TaskInfo(BaseModel):
    """A task candidate as stored in the ledger."""

    id: str
    title: str
    description: str
    priority: Priority
    is_urgent: bool
    category: str
    meeting_date: str
    meeting_topic: str
    provenance: str
    deadline: date | None = None
    score: int | None = None
    created_at: str | None = None
    completed_at: str | None = None

    @classmethod
    def from_task(cls, task: TaskCandidate) -> TaskInfo:
        return cls.model_validate(task.to_dict())


class AnalyzeRequest(BaseModel):
    """Request body for the /api/ai/analyze endpoint."""

    meeting_id: str
    provider: str | None = None


class AnalysisResponse(BaseModel):
    """Result of a single-meeting analysis or an important-tasks run."""

    tasks: list[TaskInfo]
    total_meetings: int
    summary: str
    method: str
    analyzed_at: str
    provider_used: str | None = None
    has_important_tasks: bool = False
    added_tasks_count: int = 0

    @classmethod
    def from_result(cls, result: AnalysisResult) -> AnalysisResponse:
        return cls(
            tasks=[TaskInfo.from_task(t) for t in result.tasks],
            total_meetings=result.total_meetings_considered,
            summary=result.summary,
            method=result.method.value,
            analyzed_at=result.analyzed_at,
            provider_used=result.provider_used,
            has_important_tasks=result.has_important_tasks,
            added_tasks_count=result.added_tasks_count,
        )


class PriorityUpdateRequest(BaseModel):
    priority: str


class CompleteTaskRequest(BaseModel):
    task_id: str = Field(min_length=1)


class TaskResponse(BaseModel):
    success: bool = True
    message: str
    task: TaskInfo


class CompletedTasksResponse(BaseModel):
    """Completed tasks grouped by category, then meeting."""

    completed_tasks: dict[str, dict[str, dict[str, Any]]]
    total_completed: int


class TopicCleanupRequest(BaseModel):
    topics: list[str]


class MeetingCleanupRequest(BaseModel):
    """The meeting the host just deleted; only its identity fields are needed."""

    id: str
    date: str
    topic: str


class CleanupResponse(BaseModel):
    success: bool = True
    message: str
    removed_active: int
    removed_completed: int
    remaining_active: int
    remaining_completed: int

    @classmethod
    def from_result(cls, result: CleanupResult, message: str) -> CleanupResponse:
        return cls(message=message, **result.__dict__)
