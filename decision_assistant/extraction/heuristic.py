"""Keyword-weighted task extraction used when no AI provider can be reached.

Each decision sentence gets an integer importance score from Turkish keyword
tables and a handful of structural patterns. Scoring is deterministic: the
only randomness is in the generated task ids.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from decision_assistant.extraction.normalizer import truncate_title
from decision_assistant.models import (
    PRIORITY_RANK,
    Category,
    MeetingRef,
    Priority,
    Provenance,
    TaskCandidate,
    new_task_id,
)

logger = logging.getLogger(__name__)

MIN_SENTENCE_LENGTH = 15

_SENTENCE_SPLIT = re.compile(r"[.!?\n]")
_LEADING_NUMBER = re.compile(r"^\d+[-.\s]*")


@dataclass(frozen=True)
class KeywordCategory:
    name: str
    weight: int
    keywords: tuple[str, ...]


URGENT = KeywordCategory("urgent", 4, ("acil", "hemen", "en kısa", "derhal", "ivedi", "mutlaka", "şart"))
DEADLINE = KeywordCategory("deadline", 3, ("tarihine kadar", "son tarih", "deadline", "bitiş", "teslim"))
IMPORTANT = KeywordCategory("important", 2, ("önemli", "kritik", "gerekli", "zorunlu", "lazım"))
RESPONSIBILITY = KeywordCategory(
    "responsibility", 2, ("sorumlu", "görevli", "atanmış", "yetkilendirilmiş")
)
ASSIGNMENT = KeywordCategory(
    "assignment", 2, ("dağılım", "atama", "görevlendirme", "planlama", "düzenleme")
)
ACTION = KeywordCategory(
    "action",
    1,
    (
        "yapılacak",
        "tamamlanacak",
        "hazırlanacak",
        "düzenlenecek",
        "organize edilecek",
        "planlanacak",
    ),
)
STAFF = KeywordCategory("staff", 1, ("hoca", "öğretmen", "girecek", "olacak", "çalıştıracak"))
ROUTINE = KeywordCategory("routine", -1, ("ders", "sınıf", "müfredat", "eğitim", "kurs"))

WEIGHTED_CATEGORIES: tuple[KeywordCategory, ...] = (
    URGENT,
    DEADLINE,
    IMPORTANT,
    RESPONSIBILITY,
    ASSIGNMENT,
    ACTION,
    STAFF,
)

_LETTER = "A-Za-zÇĞıİÖŞÜçğöşü"

# \b patterns use ASCII word boundaries, so Turkish letters end a word.
TASK_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\d+[-.]\s*[{_LETTER}]"),
    re.compile(rf"[{_LETTER}]+\s+(hoca|öğretmen|müdür|sorumlu)"),
    re.compile(r"\b(eğitim|kurs|toplantı|sınav|proje)\b.*\b(düzenle|organize|hazırla|yap)\b", re.ASCII),
    re.compile(r"\b(rapor|belge|form|liste)\b.*\b(hazırla|teslim|gönder)\b", re.ASCII),
    re.compile(r"\b(müfredat|ders|sınıf)\b.*\b(hoca|öğretmen)\b", re.ASCII),
    re.compile(r"\b(girecek|olacak|çalıştıracak)\b", re.ASCII),
    re.compile(r"\b(tyt|ayt|sınav)\b.*\b(ders|saat)\b", re.ASCII),
)


@dataclass(frozen=True)
class HeuristicThresholds:
    """Empirically tuned score cut-offs."""

    min_score: int = 1
    medium_threshold: int = 4
    high_threshold: int = 6
    max_tasks: int = 8


@dataclass
class SentenceScore:
    """Importance score of one sentence and the keywords that produced it."""

    sentence: str
    score: int
    matches: dict[str, list[str]] = field(default_factory=dict)
    pattern_bonus: bool = False


def split_sentences(text: str) -> list[str]:
    """Split decision text on ``. ! ? \\n`` and drop fragments under 15 characters."""
    sentences = (s.strip() for s in _SENTENCE_SPLIT.split(text))
    return [s for s in sentences if len(s) >= MIN_SENTENCE_LENGTH]


def score_sentence(sentence: str) -> SentenceScore:
    """Compute the importance score of a single sentence."""
    lowered = sentence.lower()
    result = SentenceScore(sentence=sentence, score=1)

    for category in WEIGHTED_CATEGORIES:
        found = [k for k in category.keywords if k in lowered]
        if found:
            result.score += len(found) * category.weight
            result.matches[category.name] = found

    routine = [k for k in ROUTINE.keywords if k in lowered]
    if routine and "urgent" not in result.matches and "deadline" not in result.matches:
        result.score = max(0, result.score - 1)
        result.matches[ROUTINE.name] = routine

    if any(p.search(lowered) for p in TASK_PATTERNS):
        result.score += 1
        result.pattern_bonus = True

    return result


def classify_score(score: int, thresholds: HeuristicThresholds) -> tuple[Priority, bool]:
    """Map a score to ``(priority, is_urgent)``."""
    if score >= thresholds.high_threshold:
        return Priority.HIGH, True
    if score >= thresholds.medium_threshold:
        return Priority.MEDIUM, False
    return Priority.LOW, False


def _sort_key(task: TaskCandidate) -> tuple[int, int, int]:
    return (-(task.score or 0), 0 if task.is_urgent else 1, -PRIORITY_RANK[task.priority])


class HeuristicTaskExtractor:
    """Derive ranked task candidates directly from meeting decision text."""

    def __init__(self, thresholds: HeuristicThresholds | None = None) -> None:
        self.thresholds = thresholds or HeuristicThresholds()

    def candidates_for(self, meeting: MeetingRef) -> list[TaskCandidate]:
        """Score every sentence of one meeting; unsorted, untruncated."""
        tasks: list[TaskCandidate] = []
        for sentence in split_sentences(meeting.decision_text):
            scored = score_sentence(sentence)
            logger.debug(
                "Scored %d for %r (matches=%s, pattern=%s)",
                scored.score,
                sentence,
                scored.matches,
                scored.pattern_bonus,
            )
            if scored.score < self.thresholds.min_score:
                continue

            priority, is_urgent = classify_score(scored.score, self.thresholds)
            title = truncate_title(_LEADING_NUMBER.sub("", sentence).strip() or sentence)
            tasks.append(
                TaskCandidate(
                    id=new_task_id("task"),
                    title=title,
                    description=sentence,
                    priority=priority,
                    is_urgent=is_urgent,
                    category=Category.ACTION,
                    meeting_date=meeting.date,
                    meeting_topic=meeting.topic,
                    provenance=Provenance.HEURISTIC,
                    score=scored.score,
                )
            )
        return tasks

    def extract(self, meetings: list[MeetingRef]) -> list[TaskCandidate]:
        """Return the top-ranked candidates across ``meetings``.

        Never raises: a meeting whose text cannot be scored is logged and
        skipped, so the result is at worst empty.
        """
        candidates: list[TaskCandidate] = []
        for meeting in meetings:
            try:
                candidates.extend(self.candidates_for(meeting))
            except Exception:
                logger.exception("Heuristic scoring failed for meeting %s", meeting.id)

        candidates.sort(key=_sort_key)
        selected = candidates[: self.thresholds.max_tasks]
        logger.info(
            "Heuristic extraction kept %d of %d candidates from %d meetings",
            len(selected),
            len(candidates),
            len(meetings),
        )
        return selected
