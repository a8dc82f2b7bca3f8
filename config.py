import os
from functools import lru_cache


class Settings:
    def __init__(
        self,
        api_url: str,
        api_token: str,
        api_timeout_secs: float,
        timezone: str,
        csrf_secret: str,
        log_level: str,
    ) -> None:
        self.api_url = api_url
        self.api_token = api_token
        self.api_timeout_secs = api_timeout_secs
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.log_level = log_level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    api_url = os.getenv("FINANCE_API_URL", "http://localhost:3000").rstrip("/")
    api_token = os.getenv("FINANCE_API_TOKEN", "")
    api_timeout_secs = float(os.getenv("FINANCE_API_TIMEOUT_SECS", "10"))
    timezone = os.getenv("FINANCE_TIMEZONE", "Europe/Madrid")
    csrf_secret = os.getenv(
        "FINANCE_CSRF_SECRET",
        "3f6c2b1e9a0d47c58e2f71b4c6a9d03e5b8f1a2c7d4e9b06f3a5c8e1d2b7f4a9",
    )
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    return Settings(
        api_url=api_url,
        api_token=api_token,
        api_timeout_secs=api_timeout_secs,
        timezone=timezone,
        csrf_secret=csrf_secret,
        log_level=log_level,
    )
