"""Runtime configuration for the app, read from the environment."""
import os
from typing import NamedTuple, Optional

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings(NamedTuple):
    environment: str
    database_url: str
    session_cookie_name: str
    session_cookie_secure: bool
    session_max_age: int
    password_hash_rounds: int
    upload_dir: str
    max_upload_bytes: int
    db_connect_retries: int
    db_connect_backoff: float
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def load_settings() -> Settings:
    environment = os.getenv("APP_ENV", "development")
    return Settings(
        environment=environment,
        database_url=os.getenv("DATABASE_URL", "sqlite:///./ambuhub.db"),
        session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "ambuhub_session"),
        # HTTPS-only cookies unless explicitly relaxed; only development defaults to insecure
        session_cookie_secure=_get_bool(
            os.getenv("SESSION_COOKIE_SECURE"), default=environment.lower() == "production"
        ),
        session_max_age=int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24))),
        password_hash_rounds=int(os.getenv("PASSWORD_HASH_ROUNDS", "29000")),
        upload_dir=os.getenv("UPLOAD_DIR", os.path.join(PACKAGE_DIR, "static", "uploads")),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024))),
        db_connect_retries=int(os.getenv("DB_CONNECT_RETRIES", "3")),
        db_connect_backoff=float(os.getenv("DB_CONNECT_BACKOFF", "1.0")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


state = load_settings()


def get_settings() -> Settings:
    return state


def set_settings(settings: Settings) -> None:
    global state
    state = settings


def override(**changes) -> Settings:
    """Replace selected settings and return the new state."""
    set_settings(state._replace(**changes))
    return state


def validate_runtime_config(settings: Optional[Settings] = None) -> None:
    settings = settings or state
    if settings.is_production and not settings.session_cookie_secure:
        raise RuntimeError("SESSION_COOKIE_SECURE must be enabled in production.")
