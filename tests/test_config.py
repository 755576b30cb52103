"""Tests for configuration loading and settings defaults."""

import pytest
from pydantic import ValidationError

from handoff_bot.config import (
    DEFAULT_HANDOFF_KEYWORDS,
    AgentSettings,
    AppConfig,
    AnthropicConfig,
    build_default_settings,
    load_config,
    merge_settings,
)
from handoff_bot.core.types import SearchPriority


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_HANDOFF_KEY", "sk-ant-test")
        path = _write(
            tmp_path,
            "data_dir: /tmp/hb\n"
            "anthropic:\n  api_key: ${TEST_HANDOFF_KEY}\n"
            "storage:\n  db_path: ${data_dir}/db.sqlite\n"
            "engine:\n  history_turns: 6\n",
        )
        config = load_config(path, tmp_path / "missing.env")
        assert config.anthropic.api_key == "sk-ant-test"
        assert config.storage.db_path == "/tmp/hb/db.sqlite"
        assert config.engine.history_turns == 6
        assert config.engine.knowledge_limit == 30

    def test_unresolved_api_key_becomes_empty(self, tmp_path, monkeypatch):
        monkeypatch.delenv("UNSET_HANDOFF_KEY", raising=False)
        path = _write(tmp_path, "anthropic:\n  api_key: ${UNSET_HANDOFF_KEY}\n")
        assert load_config(path, tmp_path / "missing.env").anthropic.api_key == ""

    def test_dotenv_loaded(self, tmp_path, monkeypatch):
        # setenv then delenv so teardown leaves the variable unset
        monkeypatch.setenv("DOTENV_HANDOFF_KEY", "placeholder")
        monkeypatch.delenv("DOTENV_HANDOFF_KEY")
        env = tmp_path / ".env"
        env.write_text("DOTENV_HANDOFF_KEY=from-dotenv\n", encoding="utf-8")
        path = _write(tmp_path, "anthropic:\n  api_key: ${DOTENV_HANDOFF_KEY}\n")
        assert load_config(path, env).anthropic.api_key == "from-dotenv"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml", tmp_path / "nope.env")


class TestAgentSettings:
    def test_builtin_defaults(self):
        settings = AgentSettings()
        assert settings.enabled is False
        assert settings.temperature == 0.7
        assert settings.max_tokens == 1000
        assert settings.language == "ar"
        assert settings.handoff_after_failures == 3
        assert settings.handoff_keywords == DEFAULT_HANDOFF_KEYWORDS
        assert settings.search_priority == SearchPriority.LIBRARY_THEN_PRODUCTS
        assert settings.silence_on_handoff is True
        assert settings.silence_duration_minutes == 60

    def test_frozen(self):
        with pytest.raises(ValidationError):
            AgentSettings().enabled = True

    def test_handoff_after_failures_at_least_one(self):
        with pytest.raises(ValidationError):
            AgentSettings(handoff_after_failures=0)

    def test_merge_accepts_both_key_styles(self):
        merged = merge_settings(AgentSettings(), {"store_name": "A", "workingHours": "9-5"})
        assert merged.store_name == "A"
        assert merged.working_hours == "9-5"

    def test_default_settings_built_once_from_config(self):
        config = AppConfig(
            anthropic=AnthropicConfig(api_key="k", default_model="claude-custom"),
            defaults={"enabled": True, "tone": "formal"},
        )
        defaults = build_default_settings(config)
        assert defaults.model == "claude-custom"
        assert defaults.enabled is True
        assert defaults.tone == "formal"
        assert AgentSettings().model != "claude-custom"
