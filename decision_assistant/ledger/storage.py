"""Backing stores for the task ledger and the host's meeting records.

Two backends are provided: flat JSON files (the default for a single-host
install) and Supabase tables. Task collections are always read fully and
rewritten fully.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Protocol, cast

from supabase import Client, create_client

from decision_assistant.config import Settings
from decision_assistant.models import MeetingRef, TaskCandidate, utc_now

logger = logging.getLogger(__name__)

TASKS_FILE = "tasks.json"
COMPLETED_TASKS_FILE = "completed_tasks.json"
MEETINGS_FILE = "meetings.json"

TASKS_TABLE = "tasks"
COMPLETED_TASKS_TABLE = "completed_tasks"
MEETINGS_TABLE = "meetings"


class TaskStore(Protocol):
    """Durable storage for the active and completed task collections."""

    def load_active(self) -> list[TaskCandidate]: ...

    def load_completed(self) -> list[TaskCandidate]: ...

    def save_active(self, tasks: list[TaskCandidate]) -> None: ...

    def save_completed(self, tasks: list[TaskCandidate]) -> None: ...


class MeetingRepository(Protocol):
    """Host-owned meeting records; the core only reads them and flips the analyzed flag."""

    def list_meetings(self) -> list[MeetingRef]: ...

    def get(self, meeting_id: str) -> MeetingRef | None: ...

    def mark_analyzed(self, meeting_ids: list[str], analyzed_at: str | None = None) -> int: ...


def atomic_write_json(path: Path, data: Any) -> None:
    """Write ``data`` as JSON so readers never observe a truncated file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


def resolve_revisions(rows: list[dict[str, Any]]) -> list[MeetingRef]:
    """Attach the topic/date/decision of the meeting each row revises."""
    by_id = {str(r.get("id")): r for r in rows}
    meetings: list[MeetingRef] = []
    for row in rows:
        row = dict(row)
        revised = by_id.get(str(row.get("revised_from_id"))) if row.get("revised_from_id") else None
        if revised is not None:
            row.setdefault("revised_from_topic", revised.get("topic"))
            row.setdefault("revised_from_date", revised.get("date"))
            row.setdefault("revised_from_decision", revised.get("decision") or revised.get("decision_text"))
        meetings.append(MeetingRef.from_dict(row))
    return meetings


class JsonFileTaskStore:
    """``tasks.json`` and ``completed_tasks.json`` inside one directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.active_path = self.directory / TASKS_FILE
        self.completed_path = self.directory / COMPLETED_TASKS_FILE

    def load_active(self) -> list[TaskCandidate]:
        rows = _read_json(self.active_path, [])
        repaired = False
        for index, row in enumerate(rows):
            if not row.get("id"):
                row["id"] = f"fallback-{index}-{int(time.time() * 1000)}"
                logger.info("Adding missing ID to task %r -> %s", row.get("title"), row["id"])
                repaired = True
        if repaired:
            atomic_write_json(self.active_path, rows)
        return [TaskCandidate.from_dict(r) for r in rows]

    def load_completed(self) -> list[TaskCandidate]:
        return [TaskCandidate.from_dict(r) for r in _read_json(self.completed_path, [])]

    def save_active(self, tasks: list[TaskCandidate]) -> None:
        atomic_write_json(self.active_path, [t.to_dict() for t in tasks])

    def save_completed(self, tasks: list[TaskCandidate]) -> None:
        atomic_write_json(self.completed_path, [t.to_dict() for t in tasks])


class JsonFileMeetingRepository:
    """Meetings kept as ``{"meetings": [...]}`` in a single JSON document."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _rows(self) -> list[dict[str, Any]]:
        data = _read_json(self.path, {"meetings": []}) or {"meetings": []}
        return list(data.get("meetings") or [])

    def list_meetings(self) -> list[MeetingRef]:
        return resolve_revisions(self._rows())

    def get(self, meeting_id: str) -> MeetingRef | None:
        for meeting in self.list_meetings():
            if meeting.id == str(meeting_id):
                return meeting
        return None

    def mark_analyzed(self, meeting_ids: list[str], analyzed_at: str | None = None) -> int:
        stamp = analyzed_at or utc_now().isoformat()
        wanted = {str(i) for i in meeting_ids}
        rows = self._rows()
        marked = 0
        for row in rows:
            if str(row.get("id")) in wanted:
                row["task_analyzed"] = True
                row["task_analyzed_at"] = stamp
                marked += 1
        if marked:
            atomic_write_json(self.path, {"meetings": rows})
        return marked


def get_supabase_client(settings: Settings) -> Client:
    """Create and return a Supabase client from settings."""
    return create_client(settings.supabase_url, settings.supabase_key)


class SupabaseTaskStore:
    """Task collections stored as rows in the ``tasks`` / ``completed_tasks`` tables."""

    batch_size = 50

    def __init__(self, client: Client) -> None:
        self.client = client

    def _load(self, table: str) -> list[TaskCandidate]:
        result = self.client.table(table).select("*").order("created_at").execute()
        rows = cast(list[dict[str, Any]], result.data)
        return [TaskCandidate.from_dict(r) for r in rows]

    def _rewrite(self, table: str, tasks: list[TaskCandidate]) -> None:
        """Replace the table contents with ``tasks``.

        New rows are upserted before stale ids are deleted, so a failure part
        way through leaves the previous rows in place.
        """
        rows = [t.to_dict() for t in tasks]
        for i in range(0, len(rows), self.batch_size):
            self.client.table(table).upsert(rows[i : i + self.batch_size], on_conflict="id").execute()

        keep = {row["id"] for row in rows}
        existing = self.client.table(table).select("id").execute()
        stale = [r["id"] for r in cast(list[dict[str, Any]], existing.data) if r["id"] not in keep]
        for i in range(0, len(stale), self.batch_size):
            self.client.table(table).delete().in_("id", stale[i : i + self.batch_size]).execute()
        if stale:
            logger.info("Removed %d stale rows from %s", len(stale), table)

    def load_active(self) -> list[TaskCandidate]:
        return self._load(TASKS_TABLE)

    def load_completed(self) -> list[TaskCandidate]:
        return self._load(COMPLETED_TASKS_TABLE)

    def save_active(self, tasks: list[TaskCandidate]) -> None:
        self._rewrite(TASKS_TABLE, tasks)

    def save_completed(self, tasks: list[TaskCandidate]) -> None:
        self._rewrite(COMPLETED_TASKS_TABLE, tasks)


class SupabaseMeetingRepository:
    """Meetings read from the host's ``meetings`` table."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def list_meetings(self) -> list[MeetingRef]:
        result = self.client.table(MEETINGS_TABLE).select("*").execute()
        return resolve_revisions(cast(list[dict[str, Any]], result.data))

    def get(self, meeting_id: str) -> MeetingRef | None:
        for meeting in self.list_meetings():
            if meeting.id == str(meeting_id):
                return meeting
        return None

    def mark_analyzed(self, meeting_ids: list[str], analyzed_at: str | None = None) -> int:
        if not meeting_ids:
            return 0
        stamp = analyzed_at or utc_now().isoformat()
        result = (
            self.client.table(MEETINGS_TABLE)
            .update({"task_analyzed": True, "task_analyzed_at": stamp})
            .in_("id", [str(i) for i in meeting_ids])
            .execute()
        )
        return len(cast(list[dict[str, Any]], result.data or []))


def build_stores(settings: Settings) -> tuple[TaskStore, MeetingRepository]:
    """Construct the task store and meeting repository selected by ``storage_backend``."""
    if settings.storage_backend == "supabase":
        client = get_supabase_client(settings)
        return SupabaseTaskStore(client), SupabaseMeetingRepository(client)

    data_dir = Path(settings.data_dir)
    return JsonFileTaskStore(data_dir), JsonFileMeetingRepository(data_dir / MEETINGS_FILE)
