"""Plugin settings loaded from plugin config, environment, and .env files."""

import logging
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _env_files() -> tuple[Path, ...] | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    # Later files win, so a local .env overrides the shared OpenClaw one.
    return (Path.home() / ".openclaw" / ".env", Path(".env"))


def _to_snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


class Settings(BaseSettings):
    """MemOS lifecycle configuration.

    Precedence: explicit plugin config > environment > .env files > defaults.
    """

    # MemOS service
    memos_api_url: str = Field(default="http://127.0.0.1:8000")
    memos_user_id: str = Field(default="default")
    memos_cube_id: str = Field(default="default")
    internal_service_secret: str = Field(default="")

    # Feature flags
    context_injection: bool = Field(default=True)
    fact_extraction: bool = Field(default=True)
    compaction_flush: bool = Field(default=True)
    tool_traces: bool = Field(default=True)
    task_tools: bool = Field(default=True)
    reranker_enabled: bool = Field(default=False)

    # TickTick sync
    ticktick_sync: bool = Field(default=False)
    ticktick_access_token: str = Field(default="")

    # LLM used for summarization, extraction, and reranking
    llm_backend: Literal["memos", "anthropic"] = Field(default="memos")
    anthropic_api_key: str = Field(default="")
    memory_model: str = Field(default="claude-haiku-4-5-20251001")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @classmethod
    def from_plugin_config(cls, config: Mapping[str, Any] | None = None) -> "Settings":
        """Build settings from the host's plugin config (camelCase keys).

        ``internalServiceSecret`` and ``rerankerEnabled`` map to their
        snake_case fields; unknown keys and ``None`` values are dropped so the
        environment and defaults still apply.
        """
        known = cls.model_fields
        kwargs = {}
        for key, value in (config or {}).items():
            name = _to_snake(key)
            if name in known and value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    @property
    def ticktick_enabled(self) -> bool:
        return self.ticktick_sync and bool(self.ticktick_access_token)


def configure_logging(settings: Settings) -> None:
    """Apply the standard log format at the configured level."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )
