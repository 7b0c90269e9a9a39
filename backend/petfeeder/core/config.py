# backend/petfeeder/core/config.py

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # .env first, then process environment
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "PetFeeder Backend"

    DATABASE_URL: str = "sqlite:///./petfeeder.db"

    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # text | json

    MQTT_BROKER_HOST: str = "broker.hivemq.com"
    MQTT_BROKER_PORT: int = 1883
    MQTT_CLIENT_ID: str = "petfeeder-backend"
    MQTT_TOPIC_COMMAND: str = "petfeeder/servo"
    MQTT_TOPIC_RESPONSE: str = "petfeeder/servo/response"
    MQTT_KEEPALIVE: int = 60
    MQTT_CONNECT_TIMEOUT: float = 10.0
    MQTT_RECONNECT_INTERVAL: int = 5
    MQTT_PUBLISH_TIMEOUT: float = 5.0

    SERVO_FEED_ANGLE: int = 90  # scheduled feeds
    SERVO_MANUAL_ANGLE: int = 160  # manual feeds open wider
    SERVO_REST_ANGLE: int = 0

    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TICK_SECONDS: float = 60.0
    SCHEDULER_QUERY_TIMEOUT: float = 10.0
    # IANA zone name, e.g. "Asia/Seoul". Empty means host local time.
    SCHEDULER_TIMEZONE: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
