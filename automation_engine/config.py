"""Automation Engine — Configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/automation-engine/config.yaml
    3. User config:   ~/.automation/config.yaml
    4. An explicit ``config_file`` passed to ``Settings.load()``
    5. Environment variables prefixed with AUTOMATION_
       (nested keys use ``__``, e.g. ``AUTOMATION_RUNNER__TIMEOUT_MS=5000``)

Call ``Settings.load()`` once at host startup, or rely on ``get_settings()``
which loads lazily on first use.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class RunnerConfig(BaseModel):
    """Defaults applied by WorkflowRunner when a call does not override them."""

    timeout_ms: Annotated[int, Field(ge=1, le=3_600_000)] = Field(
        default=30_000,
        description="Deadline for a whole workflow traversal, in milliseconds.",
    )
    continue_on_error: bool = Field(
        default=False,
        description="Record step failures in context.errors instead of aborting the run.",
    )
    max_parallel: Annotated[int, Field(ge=1, le=100)] = Field(
        default=5,
        description="Maximum branches a parallel step fans out to. Extra branches are dropped.",
    )


class CronConfig(BaseModel):
    check_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description=(
            "Poll cadence of CronTrigger. Values above 60 can skip a minute "
            "boundary; the trigger logs a warning but does not compensate."
        ),
    )


class HttpConfig(BaseModel):
    """Settings for the ``api`` workflow step."""

    timeout_seconds: Annotated[float, Field(gt=0, le=600)] = 30.0
    user_agent: str = "automation-engine/0.1"


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None

    @field_validator("file", mode="before")
    @classmethod
    def expand_file(cls, v: object) -> object:
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AUTOMATION_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    cron: CronConfig = Field(default_factory=CronConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment beats values read from YAML files.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Merge the YAML layers, then let ``AUTOMATION_*`` variables override.

        Later files override earlier ones key by key inside each section, so a
        user file setting ``runner.timeout_ms`` keeps the system file's
        ``runner.max_parallel``.
        """
        data: dict[str, Any] = {}
        for path in _config_candidates(config_file):
            if path.exists():
                data = _deep_merge(data, _read_yaml(path))
        return cls(**data)


def _config_candidates(config_file: Path | None) -> list[Path]:
    candidates = [
        Path("/etc/automation-engine/config.yaml"),
        Path.home() / ".automation" / "config.yaml",
    ]
    if config_file:
        candidates.append(config_file)
    return candidates


def _read_yaml(path: Path) -> dict[str, Any]:
    import yaml  # lazy import

    with path.open() as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# Module-level singleton, replaced by ``Settings.load()`` at host startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
