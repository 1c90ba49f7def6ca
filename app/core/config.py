# app/core/config.py
import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, populate_by_name=True, extra="ignore")

    # Application Settings
    APP_NAME: str = "Repair Booking Auth API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "sqlite:///./repair_auth.db")

    # Security Settings
    SECRET_KEY: str = Field(default="change-me-in-prod", alias="JWT_SECRET")
    ALGORITHM: str = "HS256"
    TOKEN_TTL_DAYS: int = 7

    # OTP policy
    OTP_TTL_SECONDS: int = 600
    OTP_COOLDOWN_SECONDS: int = 300
    OTP_HOURLY_CAP: int = 3
    OTP_HOURLY_WINDOW_SECONDS: int = 3600
    PHONE_COUNTRY_CODE: str = "91"
    # Returns the code in send-otp responses; development only
    EXPOSE_DEBUG_OTP: bool = False

    # SMS gateway: "http", "twilio" or "log"
    SMS_PROVIDER: str = "http"
    SMS_API_URL: str = "https://api.uniquedigitaloutreach.com/v1/sms"
    SMS_API_KEY: str = ""
    SMS_SENDER_ID: str = "CHLMEH"
    SMS_TIMEOUT_SECONDS: float = 30.0
    SMS_OTP_TEMPLATE: str = "Your webapp login OTP is {code} From - Chill Mechanic"
    SMS_SUCCESS_MESSAGE: str = "Message Sent Successfully!"

    # Twilio Settings
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_FROM_NUMBER: str = ""

    # CORS Settings (comma-separated)
    ALLOWED_ORIGINS: str = "*"

    # Middleware settings
    GZIP_MIN_SIZE: int = 500

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Per-client throttle on auth routes
    AUTH_REQUESTS_PER_MINUTE: int = 30
    REDIS_URL: Optional[str] = None
    # Peers allowed to set X-Forwarded-For (comma-separated hosts)
    TRUSTED_PROXIES: str = ""

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
    def trusted_proxies_list(self) -> List[str]:
        return self._split_csv(self.TRUSTED_PROXIES)

    @property
    def secret_key_configured(self) -> bool:
        return bool(self.SECRET_KEY and self.SECRET_KEY != "change-me-in-prod")


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings: Settings = get_settings()


@dataclass(frozen=True)
class AuthConfig:
    """Explicit policy/secret bundle handed to the auth components.

    Services never look at the environment themselves; build one of these
    from ``Settings`` (or by hand in tests) and pass it in.
    """

    signing_secret: str
    otp_ttl_seconds: int = 600
    cooldown_seconds: int = 300
    hourly_cap: int = 3
    hourly_window_seconds: int = 3600
    token_ttl: timedelta = timedelta(days=7)
    algorithm: str = "HS256"
    sms_provider: str = "http"
    gateway_url: str = ""
    gateway_key: str = ""
    gateway_sender: str = "CHLMEH"
    gateway_timeout: float = 30.0
    gateway_success_message: str = "Message Sent Successfully!"
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""
    country_code: str = "91"
    otp_template: str = "Your webapp login OTP is {code} From - Chill Mechanic"
    expose_debug_otp: bool = False

    @classmethod
    def from_settings(cls, s: Settings) -> "AuthConfig":
        return cls(
            signing_secret=s.SECRET_KEY,
            otp_ttl_seconds=s.OTP_TTL_SECONDS,
            cooldown_seconds=s.OTP_COOLDOWN_SECONDS,
            hourly_cap=s.OTP_HOURLY_CAP,
            hourly_window_seconds=s.OTP_HOURLY_WINDOW_SECONDS,
            token_ttl=timedelta(days=s.TOKEN_TTL_DAYS),
            algorithm=s.ALGORITHM,
            sms_provider=s.SMS_PROVIDER,
            gateway_url=s.SMS_API_URL,
            gateway_key=s.SMS_API_KEY,
            gateway_sender=s.SMS_SENDER_ID,
            gateway_timeout=s.SMS_TIMEOUT_SECONDS,
            gateway_success_message=s.SMS_SUCCESS_MESSAGE,
            twilio_account_sid=s.TWILIO_ACCOUNT_SID,
            twilio_auth_token=s.TWILIO_AUTH_TOKEN,
            twilio_from_number=s.TWILIO_FROM_NUMBER,
            country_code=s.PHONE_COUNTRY_CODE,
            otp_template=s.SMS_OTP_TEMPLATE,
            expose_debug_otp=s.EXPOSE_DEBUG_OTP,
        )
