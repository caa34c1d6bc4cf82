"""Tests for meeting relevance ranking and prompt context formatting."""

from __future__ import annotations

import pytest

from decision_assistant.retrieval.ranking import (
    NO_MEETINGS_CONTEXT,
    build_context,
    format_meeting_date,
    rank_meetings,
    score_meeting,
)
from tests.fakes import make_meeting


@pytest.fixture
def meetings():
    return [
        make_meeting("1", topic="Bütçe planı", decision="Kırtasiye alımı onaylandı."),
        make_meeting("2", topic="Sınav takvimi", decision="Final sınavı haziranda yapılacak."),
        make_meeting("3", topic="Veli toplantısı", decision="Yoklama kuralları duyurulacak."),
    ]


class TestScoreMeeting:
    def test_topic_hit_outweighs_notes(self) -> None:
        in_topic = make_meeting(topic="proje teslimi", decision="x")
        in_notes = make_meeting(topic="y", decision="x", notes="proje teslimi")
        assert score_meeting("proje teslimi", in_topic) > score_meeting("proje teslimi", in_notes)

    def test_case_insensitive(self) -> None:
        meeting = make_meeting(topic="BÜTÇE")
        assert score_meeting("bütçe", meeting) > 0

    def test_short_words_ignored(self) -> None:
        meeting = make_meeting(topic="ab", decision="ab")
        assert score_meeting("ab cd", meeting) == 0

    def test_synonyms_expand_question(self) -> None:
        meeting = make_meeting(topic="Değerlendirme", decision="Final haftası belirlendi")
        assert score_meeting("sınav ne zaman", meeting) > 0


class TestRankMeetings:
    def test_empty_input(self) -> None:
        assert rank_meetings("sınav", []) == []

    def test_non_empty_for_non_empty_input(self, meetings) -> None:
        assert rank_meetings("tamamen alakasız soru", meetings)

    def test_unrelated_falls_back_to_input_order(self, meetings) -> None:
        result = rank_meetings("xyzxyz", meetings, limit=2)
        assert [m.id for m in result] == ["1", "2"]

    def test_best_match_first(self, meetings) -> None:
        result = rank_meetings("sınav tarihi", meetings)
        assert result[0].id == "2"

    def test_scores_non_increasing(self, meetings) -> None:
        question = "toplantı sınav yoklama"
        result = rank_meetings(question, meetings)
        scores = [score_meeting(question, m) for m in result]
        assert scores == sorted(scores, reverse=True)

    def test_limit_respected(self) -> None:
        many = [make_meeting(str(i), topic=f"sınav {i}") for i in range(10)]
        assert len(rank_meetings("sınav", many)) == 5

    def test_ties_keep_input_order(self) -> None:
        same = [make_meeting(str(i), topic="proje") for i in range(3)]
        assert [m.id for m in rank_meetings("proje", same)] == ["0", "1", "2"]


class TestBuildContext:
    def test_no_meetings(self) -> None:
        assert build_context([]) == NO_MEETINGS_CONTEXT

    def test_blocks_and_separator(self, meetings) -> None:
        context = build_context(meetings[:2])
        assert context.count("\n\n---\n\n") == 1
        assert "Tarih: 01.03.2024" in context
        assert "Konu: Bütçe planı" in context
        assert "Karar: Final sınavı haziranda yapılacak." in context

    def test_revision_line(self) -> None:
        revised = make_meeting(
            "2",
            revised_from_id="1",
            revised_from_topic="Eski karar",
            revised_from_date="2024-02-01",
        )
        assert "Revize edilen karar: Eski karar (01.02.2024)" in build_context([revised])

    def test_unparseable_date_kept(self) -> None:
        assert format_meeting_date("geçen hafta") == "geçen hafta"
