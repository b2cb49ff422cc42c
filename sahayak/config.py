# sahayak/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field
from pydantic_settings import SettingsConfigDict
from typing import Optional, List, Dict
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "Scheme Sahayak API"
    APP_VERSION: str = "2.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./sahayak.db")

    # Security Settings
    SECRET_KEY: str = Field(default="scheme-sahayak-secret-key", alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    TOKEN_ISSUER: str = "scheme-sahayak-v2"

    # OTP Settings
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 5
    MAX_OTP_ATTEMPTS: int = 3
    # Expire older unverified sessions for the same phone and purpose on a new send
    OTP_SUPERSEDE_PREVIOUS: bool = True
    OTP_SEND_LIMIT: int = 3
    OTP_SEND_WINDOW_SEC: int = 3600

    # CORS Settings
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")

    # Twilio Settings (empty SID means codes are only logged)
    TWILIO_ACCOUNT_SID: str = os.environ.get("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.environ.get("TWILIO_AUTH_TOKEN", "")
    TWILIO_PHONE_NUMBER: str = os.environ.get("TWILIO_PHONE_NUMBER", "")
    TWILIO_TIMEOUT_SEC: int = 15
    SMS_COUNTRY_CODE: str = "+91"

    # Government portal integration
    PORTAL_BASE_URLS: Dict[str, str] = {}
    DEFAULT_PORTAL: str = "government_portal"
    PORTAL_TIMEOUT_SEC: float = 10.0
    WEBHOOK_SECRETS: Dict[str, str] = {}
    TRACKER_REFRESH_INTERVAL_SEC: int = 4 * 60 * 60

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Rate Limiting
    REDIS_URL: Optional[str] = os.environ.get("REDIS_URL", None)

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s

settings: Settings = get_settings()
