from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # App Settings
    APP_NAME: str = "Tirvu Partners API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "https://tirvu-parceiros-frontend.vercel.app",
    ]

    # Frontend URL sent in partner approval messages
    FRONTEND_URL: str = "https://tirvu-parceiros-frontend.vercel.app/"

    # WhatsApp gateway (Z-API)
    ZAPI_BASE_URL: str = "https://api.z-api.io"
    ZAPI_INSTANCE: str = ""
    ZAPI_TOKEN: str = ""
    ZAPI_CLIENT_TOKEN: str = ""
    NOTIFICATIONS_ENABLED: bool = True
    NOTIFICATION_TIMEOUT_SECONDS: float = 15.0

    # Realtime: seconds an unauthenticated socket may wait for its auth frame
    WS_AUTH_TIMEOUT_SECONDS: float = 10.0

    # Automation hook called for every new lead (optional)
    LEAD_WEBHOOK_URL: Optional[str] = None

    # Lead rules
    SPEAK_ON_BEHALF_MONTHLY_LIMIT: int = 10

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return self.CORS_ORIGINS

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
