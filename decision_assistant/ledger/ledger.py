"""Active and completed task collections backed by a ``TaskStore``."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any

from decision_assistant.errors import AlreadyCompletedError, InvalidArgumentError, NotFoundError
from decision_assistant.ledger.storage import TaskStore
from decision_assistant.models import (
    CleanupResult,
    MeetingRef,
    Priority,
    TaskCandidate,
    utc_now,
)

logger = logging.getLogger(__name__)

UNKNOWN_MEETING_TITLE = "Bilinmeyen Toplantı"


class TaskLedger:
    """Single-writer view over the persisted task collections.

    Every mutation reloads both collections, applies the change and writes
    the affected collection back while holding the ledger lock.
    """

    def __init__(self, store: TaskStore) -> None:
        self.store = store
        self._lock = threading.Lock()

    def active(self) -> list[TaskCandidate]:
        return self.store.load_active()

    def completed(self) -> list[TaskCandidate]:
        return self.store.load_completed()

    def is_empty(self) -> bool:
        return not self.store.load_active()

    def get(self, task_id: str) -> TaskCandidate:
        """Return the active task with ``task_id``.

        Raises:
            NotFoundError: No active task has that id.
        """
        for task in self.store.load_active():
            if task.id == task_id:
                return task
        raise NotFoundError(f"Task not found: {task_id}")

    def merge_new(self, candidates: list[TaskCandidate]) -> list[TaskCandidate]:
        """Append candidates whose title is not already active.

        Duplicates inside ``candidates`` are dropped as well; existing records
        are never overwritten.

        Returns:
            The candidates that were actually added.
        """
        with self._lock:
            current = self.store.load_active()
            seen = {task.title for task in current}
            added: list[TaskCandidate] = []
            for candidate in candidates:
                if candidate.title in seen:
                    continue
                seen.add(candidate.title)
                added.append(candidate)
            if added:
                self.store.save_active(current + added)
            logger.info("Merged %d new tasks (%d offered)", len(added), len(candidates))
            return added

    def replace_all(self, candidates: list[TaskCandidate]) -> list[TaskCandidate]:
        """Replace the active set wholesale, keeping the first task per title."""
        unique: list[TaskCandidate] = []
        seen: set[str] = set()
        for candidate in candidates:
            if candidate.title not in seen:
                seen.add(candidate.title)
                unique.append(candidate)
        with self._lock:
            self.store.save_active(unique)
        logger.info("Task ledger initialised with %d tasks", len(unique))
        return unique

    def complete(self, task_id: str) -> TaskCandidate:
        """Move an active task to the completed set, stamping ``completed_at``.

        Raises:
            AlreadyCompletedError: The task is already in the completed set.
            NotFoundError: The task exists in neither collection.
        """
        with self._lock:
            active = self.store.load_active()
            completed = self.store.load_completed()
            task = next((t for t in active if t.id == task_id), None)
            if task is None:
                if any(t.id == task_id for t in completed):
                    raise AlreadyCompletedError(f"Task already completed: {task_id}")
                raise NotFoundError(f"Task not found: {task_id}")

            done = dataclasses.replace(task, completed_at=utc_now().isoformat())
            # Completed set first so a crash between writes never loses the task
            self.store.save_completed(completed + [done])
            self.store.save_active([t for t in active if t.id != task_id])
            logger.info("Task completed: %s", task.title)
            return done

    def update_priority(self, task_id: str, priority: str | Priority) -> TaskCandidate:
        """Set a new priority on an active task.

        Raises:
            InvalidArgumentError: ``priority`` is not high/medium/low.
            NotFoundError: No active task has that id.
        """
        try:
            level = Priority(priority)
        except ValueError:
            raise InvalidArgumentError(
                f"Invalid priority: {priority}. Must be high, medium, or low"
            ) from None

        with self._lock:
            active = self.store.load_active()
            for index, task in enumerate(active):
                if task.id == task_id:
                    updated = dataclasses.replace(task, priority=level)
                    active[index] = updated
                    self.store.save_active(active)
                    logger.info("Task priority updated: %s -> %s", task.title, level.value)
                    return updated
        raise NotFoundError(f"Task not found: {task_id}")

    def delete_completed(self, task_id: str) -> TaskCandidate:
        """Remove a task from the completed set.

        Raises:
            NotFoundError: No completed task has that id.
        """
        with self._lock:
            completed = self.store.load_completed()
            for task in completed:
                if task.id == task_id:
                    self.store.save_completed([t for t in completed if t.id != task_id])
                    return task
        raise NotFoundError(f"Task not found: {task_id}")

    def completed_grouped(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Completed tasks grouped by category, then by meeting date.

        Each meeting entry is ``{"meeting_title": str, "tasks": [TaskCandidate]}``.
        """
        groups: dict[str, dict[str, dict[str, Any]]] = {}
        for task in self.store.load_completed():
            by_meeting = groups.setdefault(task.category.value, {})
            key = task.meeting_date or "unknown"
            entry = by_meeting.setdefault(
                key,
                {"meeting_title": task.meeting_topic or UNKNOWN_MEETING_TITLE, "tasks": []},
            )
            entry["tasks"].append(task)
        return groups

    def cleanup_for_deleted_meeting(self, meeting: MeetingRef) -> CleanupResult:
        """Drop every active and completed task derived from ``meeting``."""
        return self._remove_where(
            lambda task: task.belongs_to(meeting.date, meeting.topic),
            reason=f"deleted meeting {meeting.topic!r} ({meeting.id})",
        )

    def cleanup_by_topics(self, topics: list[str]) -> CleanupResult:
        """Drop tasks whose meeting topic contains any of ``topics`` (case-insensitive).

        Raises:
            InvalidArgumentError: ``topics`` is empty.
        """
        needles = [t.lower() for t in topics if t and t.strip()]
        if not needles:
            raise InvalidArgumentError("topics must be a non-empty list")
        return self._remove_where(
            lambda task: any(n in task.meeting_topic.lower() for n in needles),
            reason=f"topics {needles}",
        )

    def _remove_where(self, predicate, reason: str) -> CleanupResult:
        with self._lock:
            active = self.store.load_active()
            completed = self.store.load_completed()
            kept_active = [t for t in active if not predicate(t)]
            kept_completed = [t for t in completed if not predicate(t)]

            removed_active = len(active) - len(kept_active)
            removed_completed = len(completed) - len(kept_completed)
            if removed_active:
                self.store.save_active(kept_active)
            if removed_completed:
                self.store.save_completed(kept_completed)

        logger.info(
            "Cleanup for %s: removed %d active and %d completed tasks",
            reason,
            removed_active,
            removed_completed,
        )
        return CleanupResult(
            removed_active=removed_active,
            removed_completed=removed_completed,
            remaining_active=len(kept_active),
            remaining_completed=len(kept_completed),
        )
