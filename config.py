import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        auth_secret: str,
        token_max_age_secs: int,
        log_level: str,
        default_page_size: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.auth_secret = auth_secret
        self.token_max_age_secs = token_max_age_secs
        self.log_level = log_level
        self.default_page_size = default_page_size


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "Asia/Ho_Chi_Minh")
    auth_secret = os.getenv(
        "FINANCE_AUTH_SECRET",
        "3f9c2d7be1a64c5a8e0b71f4d2c9a6e5b8f1c3d7a2e94b6c0d5f8a1e7b3c9d24",
    )
    token_max_age_secs = int(os.getenv("FINANCE_TOKEN_MAX_AGE_SECS", "86400"))
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    default_page_size = int(os.getenv("FINANCE_DEFAULT_PAGE_SIZE", "10"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        auth_secret=auth_secret,
        token_max_age_secs=token_max_age_secs,
        log_level=log_level,
        default_page_size=default_page_size,
    )
