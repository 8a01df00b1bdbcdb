import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from opdeck.domain.constants import (
    DEFAULT_DELAY_MS,
    DEFAULT_EASY_DELAY_HOURS,
    DEFAULT_MAX_SHOWS,
    DEFAULT_MAX_STORED_CARDS,
    LIST_SERVICE_URL,
    MAX_CARDS_PER_SHOW,
    MAX_EASY_DELAY_HOURS,
    MAX_RETRIES,
    MIN_EASY_DELAY_HOURS,
    PAGE_DELAY_MS,
    PAGE_SIZE,
    RELEARN_MINUTES,
    REQUEST_TIMEOUT,
    RETRY_JITTER_MS,
    THEME_INDEX_URL,
)
from opdeck.infrastructure.persistence import SettingsRepository

logger = logging.getLogger(__name__)


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/opdeck/config.toml",
        Path.home() / ".opdeck.toml",
    ]


class AppConfig(BaseSettings):
    """
    Process-level configuration for opdeck.
    Supports loading from:
    1. Environment variables (OPDECK_*)
    2. Config file (~/.config/opdeck/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="OPDECK_",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".config/opdeck/data")

    # Remote services
    list_service_url: str = LIST_SERVICE_URL
    theme_index_url: str = THEME_INDEX_URL

    # HTTP
    request_timeout: float = REQUEST_TIMEOUT
    max_retries: int = Field(default=MAX_RETRIES, ge=0, le=10)
    retry_jitter_ms: int = Field(default=RETRY_JITTER_MS, ge=0)
    page_size: int = Field(default=PAGE_SIZE, ge=1, le=50)
    page_delay_ms: int = Field(default=PAGE_DELAY_MS, ge=0)

    verbose: int = 0

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        toml_file = next((f for f in config_files() if f.exists()), None)

        # First source wins: CLI overrides, then env, then TOML.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_data_dir(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/opdeck/config.toml (if exists)
    3. Environment variables (OPDECK_*)
    4. cli_overrides (passed from Typer)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)


SchedulerPolicyName = Literal["simple", "ease_factor"]


class RunSettings(BaseModel):
    """User-tunable settings persisted alongside the deck."""

    delay_ms: int = Field(default=DEFAULT_DELAY_MS, ge=0)
    max_shows: int = Field(default=DEFAULT_MAX_SHOWS, ge=1)
    max_cards_per_show: int = Field(default=MAX_CARDS_PER_SHOW, ge=1)
    max_stored_cards: int = Field(default=DEFAULT_MAX_STORED_CARDS, ge=1)
    scheduler_policy: SchedulerPolicyName = "simple"
    easy_delay_hours: int = DEFAULT_EASY_DELAY_HOURS
    relearn_minutes: int = Field(default=RELEARN_MINUTES, ge=1)

    @field_validator("easy_delay_hours", mode="before")
    @classmethod
    def clamp_easy_delay(cls, v: Any) -> int:
        try:
            hours = int(v)
        except TypeError:
            raise ValueError("easy_delay_hours must be a number") from None
        return max(MIN_EASY_DELAY_HOURS, min(MAX_EASY_DELAY_HOURS, hours))


def load_run_settings(repo: SettingsRepository) -> RunSettings:
    """Read persisted run settings, falling back to defaults if they don't validate."""
    raw = repo.load()
    try:
        return RunSettings.model_validate(raw)
    except ValidationError as e:
        logger.warning(
            f"Ignoring invalid run settings ({e.error_count()} error(s)); using defaults"
        )
        return RunSettings()


def save_run_settings(repo: SettingsRepository, settings: RunSettings) -> None:
    """Persist only the explicitly chosen settings; the rest keep tracking the defaults."""
    repo.save(settings.model_dump(exclude_unset=True))
