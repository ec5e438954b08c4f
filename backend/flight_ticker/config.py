from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./data/flight_ticker.db"

    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"

    origin: str = "ICN"
    currency: str = "KRW"
    weekend_count: int = 2
    max_offers: int = 5
    request_delay_seconds: float = 0.8

    # Normal-tier routes are only collected while the local hour is in
    # [daily_window_start_hour, daily_window_end_hour)
    timezone: str = "Asia/Seoul"
    daily_window_start_hour: int = 0
    daily_window_end_hour: int = 6
    core_routes: str = "NRT,KIX,FUK"

    scheduler_enabled: bool = True
    collection_interval_hours: int = 6

    site_url: str = "http://localhost:8000"
    share_image_url: str = ""

    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    webhook_url: str = ""
    twitter_api_key: str = ""
    twitter_api_secret: str = ""
    twitter_access_token: str = ""
    twitter_access_secret: str = ""

    @property
    def core_route_codes(self) -> List[str]:
        return [c.strip().upper() for c in self.core_routes.split(",") if c.strip()]

    def model_post_init(self, __context):
        if self.env == "prod" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production requires explicit DATABASE_URL (not SQLite)"
            )

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
