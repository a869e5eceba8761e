import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        session_max_age_hours: int,
        cors_origins: list[str],
        server_port: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_hours = session_max_age_hours
        self.cors_origins = cors_origins
        self.server_port = server_port


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("NOPIFIN_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _split_origins(raw: str) -> list[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("NOPIFIN_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "nopifin.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("NOPIFIN_TIMEZONE", "UTC")
    session_secret = os.getenv(
        "NOPIFIN_SESSION_SECRET",
        "5d0c1e7f3b2a49c08e61a4f9d2b7c3e1a8f04b6d9c2e5a7f1b3d8e0c6a4f2b9d",
    )
    session_max_age_hours = int(os.getenv("NOPIFIN_SESSION_MAX_AGE_HOURS", "168"))
    cors_origins = _split_origins(os.getenv("NOPIFIN_CORS_ORIGINS", "*"))
    server_port = int(os.getenv("NOPIFIN_SERVER_PORT", "2022"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        session_secret=session_secret,
        session_max_age_hours=session_max_age_hours,
        cors_origins=cors_origins,
        server_port=server_port,
    )
