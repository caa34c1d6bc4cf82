"""Tests for Settings, enums and the immutable retry configuration."""

from __future__ import annotations

import pytest

from decision_assistant.config import Settings
from decision_assistant.extraction.heuristic import HeuristicThresholds
from decision_assistant.models import PROVIDER_PRIORITY, Category, Priority, ProviderKind
from decision_assistant.orchestrator import OrchestratorConfig, rate_limit_backoff
from decision_assistant.providers.credentials import SettingsCredentialSource
from decision_assistant.providers.registry import retry_policies


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_defaults(self) -> None:
        cfg = _settings()
        assert cfg.default_ai_provider == "gemini"
        assert cfg.storage_backend == "json"
        assert cfg.outer_max_attempts == 3
        assert cfg.heuristic_high_threshold == 6

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY_3", "sk-env")
        monkeypatch.setenv("STORAGE_BACKEND", "supabase")
        cfg = _settings()
        assert cfg.openai_api_key_3 == "sk-env"
        assert cfg.storage_backend == "supabase"

    def test_unknown_env_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOMETHING_UNRELATED", "x")
        _settings()

    def test_credential_slots_in_order(self) -> None:
        cfg = _settings(gemini_api_key="a", gemini_api_key_3="c", gemini_api_key_5="  e  ")
        source = SettingsCredentialSource(cfg)
        assert source.keys_for(ProviderKind.GEMINI) == ["a", "c", "e"]
        assert source.keys_for(ProviderKind.CLAUDE) == []

    def test_retry_policies_follow_settings(self) -> None:
        cfg = _settings(rotation_delay_seconds=1.0, extract_backoff_seconds=30.0)
        policies = retry_policies(cfg)
        assert policies["extract"].rotation_delay == 1.0
        assert policies["extract"].rate_limit_backoff == 30.0
        assert policies["extract"].transient_backoff == 10.0
        assert policies["ask"].rate_limit_backoff == 15.0


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TestEnums:
    def test_provider_priority_order(self) -> None:
        assert PROVIDER_PRIORITY == (ProviderKind.GEMINI, ProviderKind.OPENAI, ProviderKind.CLAUDE)

    def test_is_str_subclass(self) -> None:
        assert isinstance(Priority.HIGH, str)
        assert Category("deadline") is Category.DEADLINE

    def test_invalid_raises(self) -> None:
        with pytest.raises(ValueError):
            ProviderKind("mistral")


# ---------------------------------------------------------------------------
# Frozen configs
# ---------------------------------------------------------------------------


class TestFrozenConfigs:
    def test_orchestrator_defaults(self) -> None:
        cfg = OrchestratorConfig()
        assert cfg.max_attempts == 3
        assert cfg.base_backoff_ms == 1000
        assert cfg.max_backoff_ms == 10000

    def test_orchestrator_immutable(self) -> None:
        cfg = OrchestratorConfig()
        with pytest.raises(AttributeError):
            cfg.max_attempts = 5  # type: ignore[misc]

    def test_thresholds_immutable(self) -> None:
        thresholds = HeuristicThresholds()
        with pytest.raises(AttributeError):
            thresholds.min_score = 3  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(1, 2.0), (2, 4.0), (3, 8.0), (4, 10.0), (10, 10.0)],
    )
    def test_rate_limit_backoff_is_capped(self, attempt: int, expected: float) -> None:
        assert rate_limit_backoff(attempt, OrchestratorConfig()) == expected
