"""Application settings for flusio.

Values default to environment variables so that the API, the job worker and
the CLI share the same configuration.
"""

import os
import pathlib

from pydantic import BaseModel, Field

BASE_DIR = pathlib.Path(__file__).resolve().parents[1]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    # Database
    database_url: str = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'data' / 'flusio.db'}")

    # Application
    environment: str = os.getenv("FLUSIO_ENVIRONMENT", "development")
    app_version: str = os.getenv("FLUSIO_VERSION", "0.1.0")
    url_host: str = os.getenv("FLUSIO_URL_HOST", "localhost")
    registrations_opened: bool = _env_bool("FLUSIO_REGISTRATIONS_OPENED", "true")
    support_email: str = os.getenv("FLUSIO_SUPPORT_EMAIL", "support@localhost")
    session_lifetime_days: int = int(os.getenv("FLUSIO_SESSION_LIFETIME_DAYS", "30"))

    # Fetching
    cache_path: str = os.getenv("FLUSIO_CACHE_PATH", str(BASE_DIR / "cache"))
    user_agent: str = os.getenv(
        "FLUSIO_USER_AGENT",
        "flusio/0.1 (+https://github.com/flusio/flusio)",
    )
    cache_validity: int = Field(
        default=int(os.getenv("FLUSIO_CACHE_VALIDITY", "3600")),
        description="Lifetime of a cached response, in seconds",
    )
    feeds_timeout: int = int(os.getenv("FLUSIO_FEEDS_TIMEOUT", "5"))
    links_timeout: int = int(os.getenv("FLUSIO_LINKS_TIMEOUT", "10"))
    feeds_sync_interval: int = int(os.getenv("FLUSIO_FEEDS_SYNC_INTERVAL", "1800"))

    # Comma separated origins allowed to call the API from a browser
    allowed_origins: str = os.getenv("FLUSIO_ALLOWED_ORIGINS", "")

    # Pocket
    pocket_consumer_key: str = os.getenv("FLUSIO_POCKET_CONSUMER_KEY", "")

    # Logging
    log_level: str = os.getenv("FLUSIO_LOG_LEVEL", "INFO")
    log_json: bool = _env_bool("FLUSIO_LOG_JSON", "false")
    log_file: str = os.getenv("FLUSIO_LOG_FILE", "")

    @property
    def allowed_origins_list(self) -> list:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def pocket_enabled(self) -> bool:
        return bool(self.pocket_consumer_key)


settings = Settings()
