"""Keyword relevance ranking of meetings against a question, plus prompt context formatting."""

from __future__ import annotations

from datetime import date

from decision_assistant.models import MeetingRef

DEFAULT_CONTEXT_LIMIT = 5

NO_MEETINGS_CONTEXT = "Henüz hiç toplantı kaydı bulunmuyor."

# Question key -> synonyms looked up in the meeting fields
SYNONYMS: dict[str, tuple[str, ...]] = {
    "sınav": ("sınav", "değerlendirme", "ara sınav", "final"),
    "tarih": ("tarih", "zaman", "ne zaman"),
    "proje": ("proje", "ödev", "teslim"),
    "devamsızlık": ("devamsızlık", "katılım", "yoklama"),
    "toplantı": ("toplantı", "zümre", "kadro"),
}


def score_meeting(question: str, meeting: MeetingRef) -> float:
    """Score one meeting's relevance to ``question``.

    Matching is case-insensitive substring containment on topic, decision,
    notes and tags; whole-question hits, per-word hits and synonym hits are
    summed.
    """
    q = question.lower()
    topic = meeting.topic.lower()
    decision = meeting.decision_text.lower()
    notes = (meeting.notes or "").lower()
    tags = (meeting.tags or "").lower()

    score = 0.0
    if q in topic:
        score += 3
    if q in decision:
        score += 2
    if q in notes:
        score += 1
    if q in tags:
        score += 1

    for word in q.split(" "):
        if len(word) <= 2:
            continue
        if word in topic:
            score += 1
        if word in decision:
            score += 1
        if word in notes:
            score += 0.5
        if word in tags:
            score += 1

    for key, synonyms in SYNONYMS.items():
        if key not in q:
            continue
        for synonym in synonyms:
            if synonym in topic:
                score += 2
            if synonym in decision:
                score += 2
            if synonym in notes:
                score += 1
            if synonym in tags:
                score += 1

    return score


def rank_meetings(
    question: str,
    meetings: list[MeetingRef],
    limit: int | None = DEFAULT_CONTEXT_LIMIT,
) -> list[MeetingRef]:
    """Return the meetings most relevant to ``question``, best first.

    Args:
        question: The user's question.
        meetings: Candidate meetings in host order.
        limit: Maximum number of meetings to return; ``None`` for no cap.

    Returns:
        Meetings with a positive score sorted by descending score (ties keep
        input order). When nothing scores above zero the first ``limit``
        meetings are returned unranked, so the result is never empty for a
        non-empty input.
    """
    if not meetings:
        return []

    scored = [(score_meeting(question, m), m) for m in meetings]
    relevant = [(s, m) for s, m in scored if s > 0]
    if not relevant:
        return list(meetings[:limit])

    relevant.sort(key=lambda pair: pair[0], reverse=True)
    return [m for _, m in relevant[:limit]]


def format_meeting_date(value: str) -> str:
    """Render an ISO date the way Turkish users read it (``15.03.2024``)."""
    try:
        return date.fromisoformat(value[:10]).strftime("%d.%m.%Y")
    except ValueError:
        return value


def build_context(meetings: list[MeetingRef]) -> str:
    """Format meetings as prompt context blocks separated by ``---``."""
    if not meetings:
        return NO_MEETINGS_CONTEXT

    blocks: list[str] = []
    for meeting in meetings:
        block = (
            f"Tarih: {format_meeting_date(meeting.date)}\n"
            f"Konu: {meeting.topic}\n"
            f"Karar: {meeting.decision_text}"
        )
        if meeting.notes:
            block += f"\nNotlar: {meeting.notes}"
        if meeting.revised_from_topic:
            revised_date = format_meeting_date(meeting.revised_from_date or "")
            block += f"\nRevize edilen karar: {meeting.revised_from_topic} ({revised_date})"
        blocks.append(block)
    return "\n\n---\n\n".join(blocks)
