from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "HMS Realtime Notification API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite:///./hms_realtime.db"
    cors_origins: List[str] = ["*"]

    websocket_path: str = "/ws/notifications"

    scheduler_enabled: bool = True
    reminder_interval_minutes: int = 5
    health_tip_interval_minutes: int = 1
    health_tip_timezone: str = "Asia/Kolkata"

    # OpenAI-compatible chat completion endpoint used for health tips
    ai_api_key: Optional[str] = None
    ai_base_url: str = "https://api.openai.com/v1"
    ai_model: str = "gpt-4o-mini"
    ai_timeout_seconds: float = 20.0

    class Config:
        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
