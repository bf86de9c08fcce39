"""
Configuration for the Gardooner analysis service
=================================================
Runtime settings for the web API, the scheduled analysis pipeline and the
LLM backends, loaded from environment variables.
Sets up the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("GARDOONER_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("GARDOONER_SECRET_KEY", "GardoonerDevSecretKey"))
    database_path: str = field(
        default_factory=lambda: os.getenv("GARDOONER_DATABASE_PATH", "database/gardooner.db")
    )

    DEBUG: bool = field(default_factory=lambda: _env_bool("GARDOONER_DEBUG", False))
    audit_log_path: str = field(default_factory=lambda: os.getenv("GARDOONER_AUDIT_LOG_PATH", "logs/audit.log"))
    log_level: str = field(default_factory=lambda: os.getenv("GARDOONER_LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("GARDOONER_LOG_DIR", "logs"))
    # Stored API keys; 64 hex chars or any passphrase. Empty keeps keys in plaintext.
    encryption_key: str = field(default_factory=lambda: os.getenv("GARDOONER_ENCRYPTION_KEY", ""), repr=False)

    # Scheduled analysis
    analysis_time_utc: str = field(default_factory=lambda: os.getenv("GARDOONER_ANALYSIS_TIME", "06:00"))
    analysis_apply_operations: bool = field(
        default_factory=lambda: _env_bool("GARDOONER_ANALYSIS_APPLY_OPERATIONS", True)
    )
    job_retry_limit: int = field(default_factory=lambda: _env_int("GARDOONER_JOB_RETRY_LIMIT", 3))

    # Context windows
    care_log_window_days: int = field(default_factory=lambda: _env_int("GARDOONER_CARE_LOG_WINDOW_DAYS", 14))
    sensor_window_hours: int = field(default_factory=lambda: _env_int("GARDOONER_SENSOR_WINDOW_HOURS", 48))
    resolved_task_window_days: int = field(
        default_factory=lambda: _env_int("GARDOONER_RESOLVED_TASK_WINDOW_DAYS", 7)
    )
    photo_window_days: int = field(default_factory=lambda: _env_int("GARDOONER_PHOTO_WINDOW_DAYS", 7))
    photo_recent_limit: int = field(default_factory=lambda: _env_int("GARDOONER_PHOTO_RECENT_LIMIT", 10))

    # LLM configuration
    llm_timeout: float = field(default_factory=lambda: _env_float("LLM_TIMEOUT", 60.0))
    llm_max_retries: int = field(default_factory=lambda: _env_int("LLM_MAX_RETRIES", 2))
    claude_model: str = field(default_factory=lambda: os.getenv("CLAUDE_MODEL", "claude-sonnet-4-20250514"))
    kimi_model: str = field(default_factory=lambda: os.getenv("KIMI_MODEL", "moonshot-v1-8k"))
    kimi_base_url: str = field(default_factory=lambda: os.getenv("KIMI_BASE_URL", "https://api.moonshot.ai/v1"))
    analysis_max_tokens: int = field(default_factory=lambda: _env_int("LLM_ANALYSIS_MAX_TOKENS", 4096))
    chat_max_tokens: int = field(default_factory=lambda: _env_int("LLM_CHAT_MAX_TOKENS", 2048))

    # Weather
    weather_api_url: str = field(
        default_factory=lambda: os.getenv("GARDOONER_WEATHER_URL", "https://api.open-meteo.com/v1/forecast")
    )
    weather_forecast_days: int = field(default_factory=lambda: _env_int("GARDOONER_WEATHER_FORECAST_DAYS", 7))
    weather_timeout: float = field(default_factory=lambda: _env_float("GARDOONER_WEATHER_TIMEOUT", 10.0))

    # Default insecure secret key - used only for detection
    _DEFAULT_SECRET_KEY: str = field(default="GardoonerDevSecretKey", init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.environment == "production" and self.secret_key == self._DEFAULT_SECRET_KEY:
            raise RuntimeError(
                "SECURITY ERROR: Cannot use default secret key in production!\n"
                "Set GARDOONER_SECRET_KEY environment variable to a secure random value."
            )
        hour, _, minute = self.analysis_time_utc.partition(":")
        if not (hour.isdigit() and minute.isdigit() and int(hour) < 24 and int(minute) < 60):
            raise ValueError(f"GARDOONER_ANALYSIS_TIME must be HH:MM, got {self.analysis_time_utc!r}")

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DATABASE_PATH": self.database_path,
            "AUDIT_LOG_PATH": self.audit_log_path,
            "DEBUG": self.DEBUG,
        }


def setup_logging(debug: bool = False, log_dir: str = "logs") -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    log_level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "gardooner_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "gardooner_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "gardooner_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "gardooner.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "gardooner_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"gardooner_console", "gardooner_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("GARDOONER_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    # SDK request logs are noisy at INFO
    for name in ("httpx", "anthropic", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
