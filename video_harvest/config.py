from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from video_harvest.services.quota_governor import resolve_reset_zone
from video_harvest.services.records import SEARCH_ORDERS

DEFAULT_DATA_DIR = ".video-harvest"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("video-harvest.db")),
    ("output_dir", Path("output")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{VIDEO_HARVEST_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Runtime configuration, read from `VIDEO_HARVEST_*` environment variables
    and an optional `.env` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDEO_HARVEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the database, stage files and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("video-harvest.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('video-harvest.db'))}",
    )
    output_dir: Path = Field(
        default=_default_in_data_dir(Path("output")),
        description=f"Directory for pipeline JSON files. {_data_dir_default_note(Path('output'))}",
    )

    # YouTube search.
    youtube_api_key: str | None = Field(
        default=None,
        description="YouTube Data API v3 developer key.",
    )
    youtube_region_code: str = Field(
        default="US",
        description="regionCode sent with every search request.",
    )
    search_default_language: str = Field(
        default="en",
        description="relevanceLanguage used when a search does not name one.",
    )
    search_default_order: str = Field(
        default="relevance",
        description="Result ordering used when a search does not name one.",
    )
    search_chunk_days: int = Field(
        default=180,
        ge=1,
        description="Length in days of each publication window a search is split into.",
    )
    search_years_back: int = Field(
        default=5,
        ge=0,
        description="How far back a search reaches when no start date is given.",
    )
    search_page_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="maxResults per search page (the API caps this at 50).",
    )

    # Quota guardrails.
    quota_reset_timezone: str = Field(
        default="America/Los_Angeles",
        description="Timezone whose midnight resets the daily YouTube quota.",
    )
    quota_daily_limit: int = Field(
        default=10_000,
        ge=0,
        description="Expected daily YouTube Data API unit limit, used for near-limit warnings.",
    )
    quota_warning_percent: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Warn when estimated daily usage exceeds this fraction of the quota limit.",
    )

    # Transcripts.
    transcript_languages: str = Field(
        default="en,en-US,en-GB",
        description="Comma-separated preferred transcript languages, most preferred first.",
    )
    transcript_rate_limit_max_requests: int = Field(
        default=5,
        ge=1,
        description="Transcript requests allowed in each rate-limit window.",
    )
    transcript_rate_limit_window_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Transcript rate-limit window size in seconds.",
    )

    # Analysis.
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server used for transcript analysis.",
    )
    llm_model: str = Field(
        default="llama3.1",
        description="Ollama model name used for transcript analysis.",
    )
    llm_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="HTTP timeout for one analysis request.",
    )
    prompt_library_path: Path | None = Field(
        default=None,
        description="YAML prompt library. Defaults to the bundled prompt_library.yaml.",
    )

    # Pipeline.
    search_phrase_template: str = Field(
        default="{search_name} symptoms",
        description="Search phrase built from a search name; `{search_name}` is substituted.",
    )
    default_user_id: str = Field(
        default="default",
        description="user_id recorded on search configs created by the pipeline.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level.",
    )

    @property
    def transcript_language_list(self) -> list[str]:
        return [part.strip() for part in self.transcript_languages.split(",") if part.strip()]

    @field_validator("youtube_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)

    @field_validator("search_default_order", mode="before")
    @classmethod
    def _normalize_order(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_HARVEST_SEARCH_DEFAULT_ORDER must be a string.")
        normalized = value.strip()
        if normalized in SEARCH_ORDERS:
            return normalized
        allowed = ", ".join(sorted(SEARCH_ORDERS))
        raise ValueError(f"VIDEO_HARVEST_SEARCH_DEFAULT_ORDER must be one of: {allowed}.")

    @field_validator("quota_reset_timezone", mode="before")
    @classmethod
    def _normalize_timezone(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_HARVEST_QUOTA_RESET_TIMEZONE must be a string.")
        normalized = value.strip()
        resolve_reset_zone(normalized)
        return normalized

    @field_validator("ollama_base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_HARVEST_OLLAMA_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("VIDEO_HARVEST_OLLAMA_BASE_URL must not be empty.")
        return normalized

    @field_validator("youtube_region_code", mode="before")
    @classmethod
    def _normalize_region_code(cls, value: Any) -> str:
        if not isinstance(value, str) or len(value.strip()) != 2:
            raise ValueError("VIDEO_HARVEST_YOUTUBE_REGION_CODE must be a two-letter code.")
        return value.strip().upper()

    @field_validator("transcript_languages", mode="before")
    @classmethod
    def _normalize_languages(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_HARVEST_TRANSCRIPT_LANGUAGES must be a string.")
        parts = [part.strip() for part in value.split(",") if part.strip()]
        if not parts:
            raise ValueError("VIDEO_HARVEST_TRANSCRIPT_LANGUAGES must name at least one language.")
        return ",".join(parts)

    @field_validator("search_phrase_template", mode="before")
    @classmethod
    def _validate_phrase_template(cls, value: Any) -> str:
        if not isinstance(value, str) or "{search_name}" not in value:
            raise ValueError(
                "VIDEO_HARVEST_SEARCH_PHRASE_TEMPLATE must contain the {search_name} placeholder."
            )
        return value

    @field_validator(*_PATH_FIELDS, "prompt_library_path", mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        return _resolve_path(value)


def _validate_search_configuration(*, youtube_api_key: str | None) -> None:
    errors: list[str] = []

    if youtube_api_key is None:
        errors.append("VIDEO_HARVEST_YOUTUBE_API_KEY is required to search YouTube.")

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid configuration:\n{bullets}")


def require_youtube_api_key(settings: AppSettings) -> str:
    _validate_search_configuration(youtube_api_key=settings.youtube_api_key)
    assert settings.youtube_api_key is not None
    return settings.youtube_api_key


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(*, validate_api_key: bool = True) -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    settings = _resolve_path_fields(settings)

    if validate_api_key:
        _validate_search_configuration(youtube_api_key=settings.youtube_api_key)

    return settings
