"""Run policy (YAML file) and runtime settings (environment).

Beginner terms:
- Run policy: what a planned task may do (tools, duration, sandbox).
- Settings: how the process talks to the text-generation backend.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

DEFAULT_CONFIG_PATH = "orchestra.config.yaml"
DEFAULT_WHITELIST = ["echo", "ls", "cat", "git", "node", "pnpm"]


class PoliciesConfig(BaseModel):
    allow_network: bool = False
    default_fs_mode: Literal["read-only", "rw"] = "read-only"
    max_task_duration_sec: int = Field(default=300, ge=1)
    max_total_duration_sec: int = Field(default=1800, ge=1)


class LLMConfig(BaseModel):
    backend: str = "openai"
    model: str = "gpt-4o-mini"


class RetriesConfig(BaseModel):
    max: int = Field(default=2, ge=0)
    backoff_base_sec: float = Field(default=1.0, ge=0.0)


class ConcurrencyConfig(BaseModel):
    max_workers: int = Field(default=4, ge=1)


class PathsConfig(BaseModel):
    runs: str = "./runs"


class TelemetryConfig(BaseModel):
    level: Literal["debug", "info", "warn", "error"] = "info"
    format: Literal["jsonl"] = "jsonl"


class OrchestraConfig(BaseModel):
    """Validated shape of orchestra.config.yaml. Every section has defaults."""

    version: str = "1"
    policies: PoliciesConfig = Field(default_factory=PoliciesConfig)
    whitelist_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_WHITELIST))
    llm: LLMConfig = Field(default_factory=LLMConfig)
    retries: RetriesConfig = Field(default_factory=RetriesConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    def policy_constraints(self) -> dict[str, object]:
        """Subset of the policy that is shown to the planner model."""
        return {
            "policies": self.policies.model_dump(),
            "retries": {"max": self.retries.max},
        }


def load_config(path: str | Path) -> OrchestraConfig:
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"top-level YAML value must be a mapping, got {type(data).__name__}")
        return OrchestraConfig.model_validate(data)
    except (OSError, yaml.YAMLError, ValidationError, ConfigError) as exc:
        raise ConfigError(f"Failed to load config from {config_path}: {exc}") from exc


def load_config_or_default(path: str | Path) -> OrchestraConfig:
    """Missing file means defaults; a present but broken file still fails."""
    if not Path(path).exists():
        return OrchestraConfig()
    return load_config(path)


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "orchestra-planner"
    config_path: str = DEFAULT_CONFIG_PATH
    llm_provider: Literal["openai", "offline"] = "offline"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.2, ge=0.0)
    openai_api_key: str = ""
    log_level: str = "info"

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRA_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
