"""AI endpoints: provider listing, Q&A, task extraction and the task ledger."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from decision_assistant.api.dependencies import get_service, http_error
from decision_assistant.api.models import (
    AnalysisResponse,
    AnalyzeRequest,
    AskRequest,
    AskResponse,
    CleanupResponse,
    CompletedTasksResponse,
    CompleteTaskRequest,
    PriorityUpdateRequest,
    ProviderInfo,
    ProvidersResponse,
    ProviderTestRequest,
    ProviderTestResponse,
    TaskInfo,
    TaskResponse,
    TopicCleanupRequest,
)
from decision_assistant.errors import AssistantError
from decision_assistant.service import AssistantService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai")


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(service: AssistantService = Depends(get_service)) -> ProvidersResponse:
    """List supported providers and whether each has API keys configured."""
    return ProvidersResponse(
        providers=[ProviderInfo.from_descriptor(d) for d in service.configured_providers()],
        default_provider=service.settings.default_ai_provider,
    )


@router.post("/test", response_model=ProviderTestResponse)
async def run_provider_test(
    request: ProviderTestRequest,
    service: AssistantService = Depends(get_service),
) -> ProviderTestResponse:
    """Run a connectivity test against one provider."""
    try:
        ok = await service.test_provider(request.provider)
    except AssistantError as exc:
        raise http_error(exc) from exc
    message = "Bağlantı başarılı" if ok else "Bağlantı başarısız"
    return ProviderTestResponse(provider=request.provider, success=ok, message=message)


@router.post("/ask", response_model=AskResponse)
async def ask(request: AskRequest, service: AssistantService = Depends(get_service)) -> AskResponse:
    """Answer a question about recorded meeting decisions."""
    try:
        result = await service.ask_question(request.question, preferred_provider=request.provider)
    except AssistantError as exc:
        logger.warning("Ask failed: %s", exc)
        raise http_error(exc) from exc
    return AskResponse.from_result(result)


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze(
    request: AnalyzeRequest,
    service: AssistantService = Depends(get_service),
) -> AnalysisResponse:
    """Extract important tasks from a single meeting."""
    try:
        result = await service.analyze_meeting(request.meeting_id, preferred_provider=request.provider)
    except AssistantError as exc:
        logger.warning("Analysis of meeting %s failed: %s", request.meeting_id, exc)
        raise http_error(exc) from exc
    return AnalysisResponse.from_result(result)


@router.get("/important-tasks", response_model=AnalysisResponse)
async def important_tasks(
    provider: str | None = None,
    service: AssistantService = Depends(get_service),
) -> AnalysisResponse:
    """Return active important tasks, analysing new meetings first."""
    try:
        result = await service.extract_important_tasks(preferred_provider=provider)
    except AssistantError as exc:
        raise http_error(exc) from exc
    return AnalysisResponse.from_result(result)


@router.put("/tasks/{task_id}/priority", response_model=TaskResponse)
async def update_priority(
    task_id: str,
    request: PriorityUpdateRequest,
    service: AssistantService = Depends(get_service),
) -> TaskResponse:
    try:
        task = service.update_task_priority(task_id, request.priority)
    except AssistantError as exc:
        raise http_error(exc) from exc
    return TaskResponse(message="Task priority updated successfully", task=TaskInfo.from_task(task))


@router.post("/complete-task", response_model=TaskResponse)
async def complete_task(
    request: CompleteTaskRequest,
    service: AssistantService = Depends(get_service),
) -> TaskResponse:
    try:
        task = service.complete_task(request.task_id)
    except AssistantError as exc:
        raise http_error(exc) from exc
    return TaskResponse(message="Task completed successfully", task=TaskInfo.from_task(task))


@router.get("/completed-tasks", response_model=CompletedTasksResponse)
async def completed_tasks(service: AssistantService = Depends(get_service)) -> CompletedTasksResponse:
    """Completed tasks grouped by category, then meeting."""
    grouped = service.completed_tasks()
    total = 0
    payload: dict[str, dict[str, dict]] = {}
    for category, meetings in grouped.items():
        payload[category] = {}
        for key, entry in meetings.items():
            total += len(entry["tasks"])
            payload[category][key] = {
                "meeting_title": entry["meeting_title"],
                "tasks": [TaskInfo.from_task(t).model_dump(mode="json") for t in entry["tasks"]],
            }
    return CompletedTasksResponse(completed_tasks=payload, total_completed=total)


@router.delete("/completed-tasks/{task_id}", response_model=TaskResponse)
async def delete_completed_task(
    task_id: str,
    service: AssistantService = Depends(get_service),
) -> TaskResponse:
    try:
        task = service.delete_completed_task(task_id)
    except AssistantError as exc:
        raise http_error(exc) from exc
    return TaskResponse(message="Task deleted successfully", task=TaskInfo.from_task(task))


@router.post("/cleanup-tasks-by-topic", response_model=CleanupResponse)
async def cleanup_tasks_by_topic(
    request: TopicCleanupRequest,
    service: AssistantService = Depends(get_service),
) -> CleanupResponse:
    """Remove tasks whose meeting topic contains any of the given topics."""
    try:
        result = service.cleanup_by_topics(request.topics)
    except AssistantError as exc:
        raise http_error(exc) from exc
    removed = result.removed_active + result.removed_completed
    return CleanupResponse.from_result(result, message=f"Cleaned up {removed} tasks")
