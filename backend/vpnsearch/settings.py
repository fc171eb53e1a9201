"""Settings for the location search backend with observability configuration."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")
    secret_key: str = _env_field("dev-secret-key", "SECRET_KEY")

    # Delay between the last keystroke and the query landing in recents.
    search_recents_debounce_seconds: float = _env_field(3.0, "SEARCH_RECENTS_DEBOUNCE_SECONDS")
    search_recents_max_entries: int = _env_field(20, "SEARCH_RECENTS_MAX_ENTRIES")
    # "redis" persists recents per user, "memory" keeps them for the process lifetime only
    search_recents_backend: str = _env_field("redis", "SEARCH_RECENTS_BACKEND")
    search_partner_marker: str = _env_field("#PARTNER", "SEARCH_PARTNER_MARKER")
    # Engines untouched for this long are closed by the sweeper; 0 keeps them forever
    search_session_idle_seconds: float = _env_field(1800.0, "SEARCH_SESSION_IDLE_SECONDS")
    search_session_sweep_interval_seconds: int = _env_field(60, "SEARCH_SESSION_SWEEP_INTERVAL_SECONDS")

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    obs_enabled: bool = _env_field(True, "OBS_ENABLED")
    obs_metrics_public: bool = _env_field(False, "OBS_METRICS_PUBLIC")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(0.1, "LOG_SAMPLING_RATE_INFO")
    obs_admin_token: Optional[str] = _env_field(None, "OBS_ADMIN_TOKEN")
    service_name: str = _env_field("vpnsearch-api", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")

    cors_allow_origins: Any = _env_field((), "CORS_ALLOW_ORIGINS")

    # Environment helpers
    def is_prod(self) -> bool:
        return self.environment.lower() in ("prod", "production", "live")

    def is_dev(self) -> bool:
        return self.environment.lower() in ("dev", "development")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        env_nested_delimiter="__",
        populate_by_name=True,
        validate_assignment=False,
    )

    @field_validator("cors_allow_origins", mode="before")
    def _split_cors(cls, value):  # type: ignore[override]
        if value in (None, ""):
            return ()
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        if isinstance(value, (list, tuple, set)):
            return tuple(str(item).strip() for item in value if str(item).strip())
        return ()

    @field_validator("search_recents_backend", mode="before")
    def _normalise_backend(cls, value):  # type: ignore[override]
        text = str(value or "redis").strip().lower()
        if text not in ("redis", "memory"):
            return "redis"
        return text

    @field_validator("search_recents_max_entries", mode="before")
    def _clamp_max_entries(cls, value):  # type: ignore[override]
        try:
            return max(1, int(value))
        except (TypeError, ValueError):
            return 20


def _normalise_level(level: str) -> str:
    return level.upper()


settings = Settings()
settings.obs_log_level = _normalise_level(settings.obs_log_level)
