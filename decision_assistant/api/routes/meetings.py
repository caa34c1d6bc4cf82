"""Meeting hooks called by the host after it changes its own meeting records."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from decision_assistant.api.dependencies import get_service
from decision_assistant.api.models import CleanupResponse, MeetingCleanupRequest
from decision_assistant.models import MeetingRef
from decision_assistant.service import AssistantService

router = APIRouter(prefix="/api/meetings")


@router.post("/cleanup-tasks", response_model=CleanupResponse)
async def cleanup_tasks_for_deleted_meeting(
    request: MeetingCleanupRequest,
    service: AssistantService = Depends(get_service),
) -> CleanupResponse:
    """Cascade a meeting deletion to every task derived from it."""
    meeting = MeetingRef(id=request.id, date=request.date, topic=request.topic, decision_text="")
    result = service.cleanup_for_deleted_meeting(meeting)
    removed = result.removed_active + result.removed_completed
    return CleanupResponse.from_result(
        result,
        message=f"Removed {removed} tasks for meeting {request.topic}",
    )
