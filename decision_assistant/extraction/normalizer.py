"""Recover structured JSON from free-form model output.

Every provider's JSON-producing operation goes through this module so a
response is repaired identically regardless of which service produced it.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date
from typing import Any

from decision_assistant.errors import MalformedResponseError
from decision_assistant.models import TITLE_MAX_LENGTH, Category, Priority

logger = logging.getLogger(__name__)

ANALYSIS_PARSE_FAILURE = "Analiz sonucu işlenirken hata oluştu."
TASKS_PARSE_FAILURE = "Görev analizi sonucu işlenirken hata oluştu."

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_ESCAPED_WHITESPACE = re.compile(r"\\[nrt]")
_WHITESPACE = re.compile(r"\s+")
_SINGLE_QUOTED_PAIR = re.compile(r"'([^'\"]*?)'\s*:\s*'([^'\"]*?)'")
_SINGLE_QUOTED_KEY = re.compile(r"([{,]\s*)'([^'\"]*?)'\s*:")
_SINGLE_QUOTED_VALUE = re.compile(r"(:\s*)'([^'\"]*?)'(\s*[,}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the outermost JSON object embedded in ``text``.

    Raises:
        MalformedResponseError: No ``{ ... }`` span exists, or the repaired
            span still is not valid JSON.
    """
    cleaned = _FENCE.sub("", text.strip())
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or start >= end:
        raise MalformedResponseError("No JSON object found in model response")

    candidate = cleaned[start : end + 1]
    candidate = _TRAILING_COMMA.sub(r"\1", candidate)
    candidate = _ESCAPED_WHITESPACE.sub(" ", candidate)
    candidate = _WHITESPACE.sub(" ", candidate)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        # Quote repairs can touch string contents, so only apply them to
        # text that is not already valid JSON.
        candidate = _SINGLE_QUOTED_PAIR.sub(r'"\1": "\2"', candidate)
        candidate = _SINGLE_QUOTED_KEY.sub(r'\1"\2":', candidate)
        candidate = _SINGLE_QUOTED_VALUE.sub(r'\1"\2"\3', candidate)
        candidate = _BARE_KEY.sub(r'\1"\2":', candidate)
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"Unparseable JSON in model response: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedResponseError("Model response JSON is not an object")
    return parsed


def empty_result(summary: str) -> dict[str, Any]:
    """The sentinel returned when a response cannot be recovered.

    ``degraded`` lets callers tell a parse failure apart from a genuine
    "no tasks" answer.
    """
    return {"tasks": [], "summary": summary, "degraded": True}


def normalize_tasks_response(text: str, fallback_summary: str = TASKS_PARSE_FAILURE) -> dict[str, Any]:
    """Parse a batch extraction response; returns the empty sentinel instead of raising."""
    try:
        data = extract_json_object(text)
    except MalformedResponseError:
        logger.warning("Could not parse task extraction response: %.500s", text)
        return empty_result(fallback_summary)

    tasks = data.get("tasks")
    return {
        "tasks": tasks if isinstance(tasks, list) else [],
        "summary": str(data.get("summary") or ""),
        "total_meetings": data.get("totalMeetings") or data.get("total_meetings") or 0,
        "degraded": False,
    }


def normalize_analysis_response(text: str) -> dict[str, Any]:
    """Parse a single-meeting analysis response; never raises."""
    try:
        data = extract_json_object(text)
    except MalformedResponseError:
        logger.warning("Could not parse meeting analysis response: %.500s", text)
        sentinel = empty_result(ANALYSIS_PARSE_FAILURE)
        sentinel["has_important_tasks"] = False
        return sentinel

    tasks = data.get("tasks")
    return {
        "tasks": tasks if isinstance(tasks, list) else [],
        "summary": str(data.get("summary") or ""),
        "has_important_tasks": _coerce_bool(data.get("hasImportantTasks", data.get("has_important_tasks"))),
        "degraded": False,
    }


def truncate_title(title: str, limit: int = TITLE_MAX_LENGTH) -> str:
    """Clip ``title`` to ``limit`` characters, ending in ``...`` when clipped."""
    title = title.strip()
    if len(title) <= limit:
        return title
    return title[: limit - 3].rstrip() + "..."


def _parse_deadline(value: Any) -> date | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def _coerce_enum(value: Any, enum_cls: type[Priority] | type[Category], default: Any) -> Any:
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


_TRUE_STRINGS = frozenset({"true", "1", "yes", "evet"})


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _coerce_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def coerce_task_payload(raw: Any) -> dict[str, Any] | None:
    """Validate one raw task dict from model output into TaskCandidate fields.

    Returns ``None`` for entries that are not objects or carry no title.
    Meeting attribution (``meetingDate`` / ``meetingTopic``) is kept as text when
    the model supplied a scalar, and dropped otherwise.
    """
    if not isinstance(raw, dict):
        return None
    title = str(raw.get("title") or "").strip()
    if not title:
        return None

    return {
        "title": truncate_title(title),
        "description": str(raw.get("description") or title),
        "priority": _coerce_enum(raw.get("priority"), Priority, Priority.MEDIUM),
        "is_urgent": _coerce_bool(raw.get("isUrgent", raw.get("is_urgent", False))),
        "deadline": _parse_deadline(raw.get("deadline")),
        "category": _coerce_enum(raw.get("category"), Category, Category.ACTION),
        "meeting_date": _coerce_text(raw.get("meetingDate") or raw.get("meeting_date")),
        "meeting_topic": _coerce_text(raw.get("meetingTopic") or raw.get("meeting_topic")),
    }
