"""Tests for provider clients: SDK error mapping and the shared operations.

SDK clients are patched at the module path; no network calls are made.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest
from anthropic.types import TextBlock
from google.api_core import exceptions as google_exceptions

from decision_assistant.config import Settings
from decision_assistant.errors import (
    AuthenticationError,
    InvalidArgumentError,
    RateLimitedError,
    TransientError,
    UnconfiguredError,
)
from decision_assistant.models import AnalysisMethod, Priority, ProviderKind, Provenance
from decision_assistant.providers import prompts
from decision_assistant.providers.base import RetryPolicy
from decision_assistant.providers.claude_provider import ClaudeProvider, classify_anthropic_error
from decision_assistant.providers.credentials import CredentialPool
from decision_assistant.providers.gemini_provider import GeminiProvider, classify_google_error
from decision_assistant.providers.openai_provider import OpenAIProvider, classify_openai_error
from decision_assistant.providers.registry import ProviderRegistry, parse_provider
from tests.fakes import FakeProvider, make_meeting, no_sleep

_REQUEST = httpx.Request("POST", "https://example.invalid/v1")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=_REQUEST)


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class TestClassifyErrors:
    @pytest.mark.parametrize(
        ("exc_cls", "status", "expected"),
        [
            (openai.RateLimitError, 429, RateLimitedError),
            (openai.AuthenticationError, 401, AuthenticationError),
            (openai.PermissionDeniedError, 403, AuthenticationError),
            (openai.InternalServerError, 500, TransientError),
        ],
    )
    def test_openai(self, exc_cls, status: int, expected) -> None:
        exc = exc_cls("boom", response=_response(status), body=None)
        err = classify_openai_error(exc)
        assert isinstance(err, expected)
        assert err.provider == "openai"
        assert err.status == status

    def test_openai_connection_error_is_transient(self) -> None:
        err = classify_openai_error(openai.APIConnectionError(request=_REQUEST))
        assert isinstance(err, TransientError)

    @pytest.mark.parametrize(
        ("exc_cls", "status", "expected"),
        [
            (anthropic.RateLimitError, 429, RateLimitedError),
            (anthropic.AuthenticationError, 401, AuthenticationError),
            (anthropic.InternalServerError, 529, TransientError),
        ],
    )
    def test_anthropic(self, exc_cls, status: int, expected) -> None:
        exc = exc_cls("boom", response=_response(status), body=None)
        err = classify_anthropic_error(exc)
        assert isinstance(err, expected)
        assert err.provider == "claude"

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (google_exceptions.ResourceExhausted("quota"), RateLimitedError),
            (google_exceptions.TooManyRequests("slow down"), RateLimitedError),
            (google_exceptions.Unauthenticated("no"), AuthenticationError),
            (google_exceptions.PermissionDenied("no"), AuthenticationError),
            (google_exceptions.InvalidArgument("API key not valid. Please pass a valid API key."), AuthenticationError),
            (google_exceptions.InvalidArgument("bad prompt"), TransientError),
            (google_exceptions.ServiceUnavailable("down"), TransientError),
        ],
    )
    def test_google(self, exc, expected) -> None:
        err = classify_google_error(exc)
        assert isinstance(err, expected)
        assert err.provider == "gemini"


# ---------------------------------------------------------------------------
# Concrete SDK wiring
# ---------------------------------------------------------------------------


def _pool(kind: ProviderKind, *keys: str) -> CredentialPool:
    return CredentialPool(kind.value, list(keys))


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_complete_uses_key_and_system_message(self) -> None:
        completion = MagicMock()
        completion.choices = [MagicMock()]
        completion.choices[0].message.content = "merhaba"

        with patch("decision_assistant.providers.openai_provider.AsyncOpenAI") as mock_cls:
            mock_cls.return_value.chat.completions.create = AsyncMock(return_value=completion)
            provider = OpenAIProvider(_pool(ProviderKind.OPENAI, "sk-1"), "gpt-4o-mini", sleep=no_sleep)
            text = await provider._complete("soru", "sk-1", system="sistem")

        assert text == "merhaba"
        mock_cls.assert_called_once_with(api_key="sk-1", max_retries=0)
        kwargs = mock_cls.return_value.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "sistem"}

    @pytest.mark.asyncio
    async def test_rate_limit_rotates_to_second_key(self) -> None:
        completion = MagicMock()
        completion.choices = [MagicMock()]
        completion.choices[0].message.content = "ok"
        create = AsyncMock(
            side_effect=[openai.RateLimitError("429", response=_response(429), body=None), completion]
        )

        with patch("decision_assistant.providers.openai_provider.AsyncOpenAI") as mock_cls:
            mock_cls.return_value.chat.completions.create = create
            provider = OpenAIProvider(_pool(ProviderKind.OPENAI, "sk-1", "sk-2"), "gpt-4o-mini", sleep=no_sleep)
            text = await provider._generate("ask", "soru")

        assert text == "ok"
        assert [c.kwargs["api_key"] for c in mock_cls.call_args_list] == ["sk-1", "sk-2"]

    @pytest.mark.asyncio
    async def test_client_reused_for_same_key(self) -> None:
        completion = MagicMock()
        completion.choices = [MagicMock()]
        completion.choices[0].message.content = "ok"

        with patch("decision_assistant.providers.openai_provider.AsyncOpenAI") as mock_cls:
            mock_cls.return_value.chat.completions.create = AsyncMock(return_value=completion)
            provider = OpenAIProvider(_pool(ProviderKind.OPENAI, "sk-1"), "gpt-4o-mini", sleep=no_sleep)
            await provider._complete("bir", "sk-1")
            await provider._complete("iki", "sk-1")

        mock_cls.assert_called_once_with(api_key="sk-1", max_retries=0)


class TestClaudeProvider:
    @pytest.mark.asyncio
    async def test_joins_text_blocks(self) -> None:
        message = MagicMock()
        message.content = [TextBlock(type="text", text="bir "), TextBlock(type="text", text="iki")]

        with patch("decision_assistant.providers.claude_provider.AsyncAnthropic") as mock_cls:
            mock_cls.return_value.messages.create = AsyncMock(return_value=message)
            provider = ClaudeProvider(_pool(ProviderKind.CLAUDE, "ck"), "claude-test", sleep=no_sleep)
            text = await provider._complete("soru", "ck", system="sistem", max_tokens=10)

        assert text == "bir iki"
        kwargs = mock_cls.return_value.messages.create.call_args.kwargs
        assert kwargs["system"] == "sistem"
        assert kwargs["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_auth_error_raised_classified(self) -> None:
        with patch("decision_assistant.providers.claude_provider.AsyncAnthropic") as mock_cls:
            mock_cls.return_value.messages.create = AsyncMock(
                side_effect=anthropic.AuthenticationError("bad key", response=_response(401), body=None)
            )
            provider = ClaudeProvider(_pool(ProviderKind.CLAUDE, "ck"), "claude-test", sleep=no_sleep)
            with pytest.raises(AuthenticationError):
                await provider._complete("soru", "ck")


class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_complete(self) -> None:
        response = MagicMock()
        response.text = "cevap"
        with patch("decision_assistant.providers.gemini_provider.genai") as mock_genai:
            mock_genai.GenerativeModel.return_value.generate_content_async = AsyncMock(return_value=response)
            provider = GeminiProvider(_pool(ProviderKind.GEMINI, "gk"), "gemini-1.5-flash", sleep=no_sleep)
            text = await provider._complete("soru", "gk", system="sistem")

        assert text == "cevap"
        mock_genai.configure.assert_called_once_with(api_key="gk")
        mock_genai.GenerativeModel.assert_called_once_with("gemini-1.5-flash", system_instruction="sistem")

    @pytest.mark.asyncio
    async def test_rate_limited_test_counts_as_working(self) -> None:
        with patch("decision_assistant.providers.gemini_provider.genai") as mock_genai:
            mock_genai.GenerativeModel.return_value.generate_content_async = AsyncMock(
                side_effect=google_exceptions.ResourceExhausted("quota")
            )
            provider = GeminiProvider(_pool(ProviderKind.GEMINI, "gk"), "gemini-1.5-flash", sleep=no_sleep)
            assert await provider.test() is True

    @pytest.mark.asyncio
    async def test_invalid_key_test_fails(self) -> None:
        with patch("decision_assistant.providers.gemini_provider.genai") as mock_genai:
            mock_genai.GenerativeModel.return_value.generate_content_async = AsyncMock(
                side_effect=google_exceptions.InvalidArgument("API key not valid")
            )
            provider = GeminiProvider(_pool(ProviderKind.GEMINI, "gk"), "gemini-1.5-flash", sleep=no_sleep)
            assert await provider.test() is False

    @pytest.mark.asyncio
    async def test_unconfigured_test_is_false(self) -> None:
        provider = GeminiProvider(_pool(ProviderKind.GEMINI), "gemini-1.5-flash", sleep=no_sleep)
        assert await provider.test() is False


# ---------------------------------------------------------------------------
# Shared operations (exercised through a scripted provider)
# ---------------------------------------------------------------------------


class TestAskQuestion:
    @pytest.mark.asyncio
    async def test_returns_answer_and_top_three_related(self) -> None:
        meetings = [make_meeting(str(i), topic=f"sınav {i}") for i in range(6)]
        provider = FakeProvider(ProviderKind.OPENAI, script=["  Cevap burada.  "])

        result = await provider.ask_question("sınav", meetings)

        assert result.answer == "Cevap burada."
        assert len(result.related_meetings) == 3
        assert result.provider_used == "openai"
        assert result.has_revisions is False

    @pytest.mark.asyncio
    async def test_flags_revisions(self) -> None:
        meetings = [make_meeting("1", topic="proje"), make_meeting("2", topic="proje", revised_from_id="1")]
        provider = FakeProvider(ProviderKind.GEMINI, script=["ok"])
        result = await provider.ask_question("proje", meetings)
        assert result.has_revisions is True

    @pytest.mark.asyncio
    async def test_empty_text_uses_canned_answer(self) -> None:
        provider = FakeProvider(ProviderKind.GEMINI, script=[""])
        result = await provider.ask_question("soru", [make_meeting()])
        assert result.answer == prompts.NO_ANSWER

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self) -> None:
        provider = FakeProvider(ProviderKind.CLAUDE, keys=[])
        with pytest.raises(UnconfiguredError):
            await provider.ask_question("soru", [make_meeting()])


class TestAnalyzeMeeting:
    @pytest.mark.asyncio
    async def test_tasks_attributed_to_meeting(self) -> None:
        payload = {
            "hasImportantTasks": True,
            "tasks": [{"title": "Soruları hazırla", "priority": "high", "isUrgent": True}, {"title": ""}],
            "summary": "özet",
        }
        meeting = make_meeting("7", date="2024-04-02", topic="Sınav kurulu")
        provider = FakeProvider(ProviderKind.GEMINI, script=[json.dumps(payload)])

        result = await provider.analyze_meeting(meeting)

        assert result.method is AnalysisMethod.AI
        assert result.degraded is False
        assert len(result.tasks) == 1
        task = result.tasks[0]
        assert task.id.startswith("analyze-")
        assert task.priority is Priority.HIGH
        assert task.provenance is Provenance.AI
        assert task.belongs_to("2024-04-02", "Sınav kurulu")

    @pytest.mark.asyncio
    async def test_unparseable_response_is_degraded(self) -> None:
        provider = FakeProvider(ProviderKind.GEMINI, script=["I cannot help with that"])
        result = await provider.analyze_meeting(make_meeting())
        assert result.tasks == []
        assert result.degraded is True

    @pytest.mark.asyncio
    async def test_string_booleans_parsed(self) -> None:
        payload = {"hasImportantTasks": "false", "tasks": [{"title": "Listeyi güncelle", "isUrgent": "false"}]}
        provider = FakeProvider(ProviderKind.GEMINI, script=[json.dumps(payload)])

        result = await provider.analyze_meeting(make_meeting())

        assert result.tasks[0].is_urgent is False
        assert result.has_important_tasks is True


class TestExtractImportantTasks:
    @pytest.mark.asyncio
    async def test_caps_at_eight_and_attributes_meetings(self) -> None:
        meetings = [
            make_meeting("1", date="2024-03-01", topic="Zümre toplantısı"),
            make_meeting("2", date="2024-02-01", topic="Veli toplantısı"),
        ]
        tasks = [{"title": f"Görev {i}", "meetingTopic": "Veli toplantısı"} for i in range(12)]
        provider = FakeProvider(ProviderKind.CLAUDE, script=[json.dumps({"tasks": tasks, "summary": ""})])

        result = await provider.extract_important_tasks(meetings)

        assert len(result.tasks) == prompts.MAX_BATCH_TASKS
        assert all(t.id.startswith("ai-task-") for t in result.tasks)
        assert all(t.meeting_topic == "Veli toplantısı" for t in result.tasks)
        assert result.total_meetings_considered == 2
        assert "2 toplantıdan 8 kritik görev" in result.summary

    @pytest.mark.asyncio
    async def test_unknown_topic_falls_back_to_date_then_first(self) -> None:
        meetings = [
            make_meeting("1", date="2024-03-01", topic="A toplantısı"),
            make_meeting("2", date="2024-02-01", topic="B toplantısı"),
        ]
        tasks = [
            {"title": "Tarihle eşleşen", "meetingTopic": "Bilinmeyen", "meetingDate": "2024-02-01"},
            {"title": "Hiç eşleşmeyen"},
        ]
        provider = FakeProvider(ProviderKind.CLAUDE, script=[json.dumps({"tasks": tasks})])

        result = await provider.extract_important_tasks(meetings)

        assert result.tasks[0].meeting_topic == "B toplantısı"
        assert result.tasks[1].meeting_topic == "A toplantısı"

    @pytest.mark.asyncio
    async def test_wrongly_typed_fields_tolerated(self) -> None:
        meetings = [
            make_meeting("1", date="2024-03-01", topic="Zümre toplantısı"),
            make_meeting("2", date="2024-02-01", topic="Veli toplantısı"),
        ]
        payload = '{"tasks": [{"title": "Sınav hazırla", "meetingDate": 20240301, "meetingTopic": 7, "isUrgent": "false"}]}'
        provider = FakeProvider(ProviderKind.GEMINI, script=[payload])

        result = await provider.extract_important_tasks(meetings)

        assert result.degraded is False
        task = result.tasks[0]
        assert task.title == "Sınav hazırla"
        assert task.is_urgent is False
        assert task.meeting_topic == "Zümre toplantısı"

    @pytest.mark.asyncio
    async def test_no_meetings_skips_call(self) -> None:
        provider = FakeProvider(ProviderKind.OPENAI)
        result = await provider.extract_important_tasks([])
        assert result.tasks == []
        assert provider.calls == []


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_lazily_caches_clients(self) -> None:
        registry = ProviderRegistry(Settings(_env_file=None, gemini_api_key="g"))  # type: ignore[call-arg]
        assert registry.get(ProviderKind.GEMINI) is registry.get(ProviderKind.GEMINI)
        assert isinstance(registry.get(ProviderKind.CLAUDE), ClaudeProvider)

    def test_descriptors_report_configuration_without_keys(self) -> None:
        registry = ProviderRegistry(
            Settings(_env_file=None, openai_api_key="o1", openai_api_key_2="o2")  # type: ignore[call-arg]
        )
        by_name = {d.name: d for d in registry.descriptors()}
        assert list(by_name) == ["gemini", "openai", "claude"]
        assert by_name["openai"].configured is True
        assert by_name["openai"].key_count == 2
        assert by_name["gemini"].configured is False
        assert "o1" not in repr(registry.descriptors())

    def test_parse_provider(self) -> None:
        assert parse_provider(" OpenAI ") is ProviderKind.OPENAI
        with pytest.raises(InvalidArgumentError):
            parse_provider("mistral")

    def test_policy_defaults(self) -> None:
        provider = FakeProvider(ProviderKind.GEMINI)
        assert provider._policy("unknown") == RetryPolicy()
