"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from handoff_bot.core.types import SearchPriority

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_HANDOFF_KEYWORDS = ["موظف", "شخص", "بشري", "مدير", "أريد إنسان"]


class AgentSettings(BaseModel):
    """Per-tenant/store agent settings. Immutable for the length of a cycle.

    Stored rows use the camelCase keys of the settings table; Python code
    uses the snake_case attribute names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    enabled: bool = False
    model: str = DEFAULT_MODEL
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    max_tokens: int = Field(default=1000, ge=1)
    language: str = "ar"  # "ar" | "en" | "auto"
    tone: str = "friendly"  # "formal" | "friendly" | "professional"

    # Handoff
    auto_handoff: bool = True
    handoff_after_failures: int = Field(default=3, ge=1)
    handoff_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_HANDOFF_KEYWORDS))

    # Search
    search_priority: SearchPriority = SearchPriority.LIBRARY_THEN_PRODUCTS

    # Silence
    silence_on_handoff: bool = True
    silence_duration_minutes: int = Field(default=60, ge=0)

    # Notifications
    handoff_notify_employee_ids: list[str] = Field(default_factory=list)
    handoff_notify_phones: list[str] = Field(default_factory=list)
    handoff_notify_emails: list[str] = Field(default_factory=list)

    # Store info
    store_name: str = ""
    store_description: str = ""
    working_hours: str = ""
    return_policy: str = ""
    shipping_info: str = ""

    # Custom messages
    welcome_message: str = "أهلاً وسهلاً! كيف يمكنني مساعدتك؟ 😊"
    fallback_message: str = "عذراً، لم أتمكن من فهم طلبك. هل ترغب بتحويلك لأحد موظفينا؟"
    handoff_message: str = "سأحولك الآن لأحد أفراد فريقنا. سيتواصل معك قريباً! 🙋‍♂️"

    @property
    def is_english(self) -> bool:
        return self.language == "en"


class AnthropicConfig(BaseModel):
    api_key: str = ""
    base_url: Optional[str] = None
    max_retries: int = 3
    timeout: int = 60
    default_model: str = DEFAULT_MODEL


class EngineConfig(BaseModel):
    knowledge_limit: int = Field(default=30, ge=1)
    knowledge_budget_chars: int = Field(default=6000, ge=0)
    history_turns: int = Field(default=10, ge=0)
    completion_timeout: float = Field(default=90.0, gt=0)


class StorageConfig(BaseModel):
    db_path: str = "./data/handoff_bot.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"
    data_dir: str = "./data"
    anthropic: Optional[AnthropicConfig] = None
    engine: EngineConfig = Field(default_factory=EngineConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    # Overrides applied on top of the built-in AgentSettings defaults
    defaults: dict[str, Any] = Field(default_factory=dict)


def build_default_settings(config: AppConfig) -> AgentSettings:
    """Build the process-wide default settings once at startup."""
    data: dict[str, Any] = {}
    if config.anthropic and config.anthropic.default_model:
        data["model"] = config.anthropic.default_model
    data.update(config.defaults)
    return merge_settings(AgentSettings(), data)


def merge_settings(base: AgentSettings, overrides: dict[str, Any]) -> AgentSettings:
    """Return a new validated settings object with *overrides* applied.

    Overrides may use either camelCase (stored) or snake_case keys.
    """
    data = base.model_dump(by_alias=True)
    fields = AgentSettings.model_fields
    for key, value in overrides.items():
        info = fields.get(key)
        data[info.alias if info is not None and info.alias else key] = value
    return AgentSettings.model_validate(data)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # First pass: extract data_dir for self-referencing
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    # Second pass: interpolate all env vars
    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    anthropic = data.get("anthropic")
    if isinstance(anthropic, dict) and _ENV_VAR_PATTERN.fullmatch(str(anthropic.get("api_key", ""))):
        # Unresolved ${ANTHROPIC_API_KEY} means no key was provided
        anthropic["api_key"] = ""

    return AppConfig(**data)
