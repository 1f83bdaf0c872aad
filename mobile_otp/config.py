#config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)
    # Application Settings
    APP_NAME: str = "Pulsar Mobile Auth API"
    APP_VERSION: str = "1.0.0"
    ENV: str = "development"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True  # Can disable in production

    # Database Settings
    DATABASE_URL: str = "sqlite:///./mobile_otp.db"

    # Security Settings
    SECRET_KEY: str = Field(default="change-me-in-prod", alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS Settings (accept comma-separated strings to avoid JSON parsing in env)
    ALLOWED_ORIGINS: str = "*"

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Redis (only used by the redis rate limit backend)
    REDIS_URL: Optional[str] = None

    # OTP delivery provider: mock | brand-custom | twilio
    OTP_PROVIDER: str = "mock"
    OTP_API_KEY: Optional[str] = None
    OTP_SENDER_ID: str = "PULSAR"
    OTP_TEMPLATE_ID: Optional[str] = None
    BRAND_OTP_ENDPOINT: str = ""
    OTP_PROVIDER_TIMEOUT_SECONDS: float = 5.0
    OTP_MOCK_DELAY_SECONDS: float = 0.0

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""

    # OTP lifecycle
    OTP_CODE_LENGTH: int = Field(default=6, ge=4, le=10)
    OTP_EXPIRY_MINUTES: int = Field(default=10, ge=1)
    OTP_MAX_RETRIES: int = Field(default=3, ge=1)
    OTP_DEFAULT_COUNTRY_CODE: str = "91"
    OTP_HASH_SECRET: Optional[str] = None

    # OTP rate limiting: database | redis | memory
    OTP_RATE_LIMIT_BACKEND: str = "database"
    OTP_RATE_LIMIT_WINDOW: int = Field(default=60, ge=1)  # minutes
    OTP_RATE_LIMIT_MAX_ATTEMPTS: int = Field(default=5, ge=1)

    # Master code, refused in production regardless of the flag
    OTP_MASTER_CODE_ENABLED: bool = False
    OTP_MASTER_CODE: str = "000000"

    # Accept comma-separated strings for list envs in addition to JSON arrays
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

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def master_code_active(self) -> bool:
        return self.OTP_MASTER_CODE_ENABLED and not self.is_production

    @property
    def otp_hash_key(self) -> str:
        return self.OTP_HASH_SECRET or self.SECRET_KEY

    @property
    def rate_limit_window_seconds(self) -> int:
        return self.OTP_RATE_LIMIT_WINDOW * 60


@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # Normalize ALLOWED_ORIGINS if provided as comma-separated string env var CORS_ORIGINS
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s

settings: Settings = get_settings()
