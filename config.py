import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        session_max_age_secs: int,
        session_cookie: str,
        cache_ttl_secs: float,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_secs = session_max_age_secs
        self.session_cookie = session_cookie
        self.cache_ttl_secs = cache_ttl_secs
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "expenses.db"
    database_url = os.getenv("EXPENSES_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("EXPENSES_TIMEZONE", "Asia/Jakarta")
    session_secret = os.getenv(
        "EXPENSES_SESSION_SECRET",
        "5d0c8a1f6b2e4f3a9c7d1e0b8a6f4c2d3e5f7a9b1c3d5e7f9a0b2c4d6e8f0a1b",
    )
    session_max_age_secs = int(os.getenv("EXPENSES_SESSION_MAX_AGE_SECS", "604800"))
    session_cookie = os.getenv("EXPENSES_SESSION_COOKIE", "expenses_session")
    cache_ttl_secs = float(os.getenv("EXPENSES_CACHE_TTL_SECS", "60"))
    log_level = os.getenv("EXPENSES_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        session_secret=session_secret,
        session_max_age_secs=session_max_age_secs,
        session_cookie=session_cookie,
        cache_ttl_secs=cache_ttl_secs,
        log_level=log_level,
    )
