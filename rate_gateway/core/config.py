"""
Gateway configuration

All external configuration (credentials, endpoints, timeout and retry tuning)
comes through here. Values are read from environment variables or a local
.env file; every field has a safe default so the library imports cleanly in
tests.
"""
import json
import logging
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_ENABLED_CARRIERS = ["ups"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Carriers built by CarrierFactory.create_enabled()
    # Accepts JSON array or comma-separated string
    ENABLED_CARRIERS: Union[str, List[str]] = DEFAULT_ENABLED_CARRIERS

    @field_validator("ENABLED_CARRIERS", mode="before")
    @classmethod
    def parse_enabled_carriers(cls, v):
        if isinstance(v, list):
            return [str(name).strip().lower() for name in v if str(name).strip()]
        if isinstance(v, str):
            if not v.strip():
                return []
            if v.startswith("["):
                try:
                    return [str(name).strip().lower() for name in json.loads(v)]
                except json.JSONDecodeError:
                    pass
            return [name.strip().lower() for name in v.split(",") if name.strip()]
        return v

    # Transport tuning
    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_RETRY_ATTEMPTS: int = 3
    HTTP_RETRY_DELAY_MS: int = 1000

    @field_validator("HTTP_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be positive")
        return v

    @field_validator("HTTP_RETRY_ATTEMPTS")
    @classmethod
    def validate_retry_attempts(cls, v):
        if v < 1:
            raise ValueError("HTTP_RETRY_ATTEMPTS must be at least 1")
        return v

    @field_validator("HTTP_RETRY_DELAY_MS")
    @classmethod
    def validate_retry_delay(cls, v):
        if v < 0:
            raise ValueError("HTTP_RETRY_DELAY_MS cannot be negative")
        return v

    # Per-carrier deadline for a fan-out call; None waits for every carrier
    CARRIER_TIMEOUT_SECONDS: Optional[float] = None

    # UPS
    UPS_CLIENT_ID: str = ""
    UPS_CLIENT_SECRET: str = ""
    UPS_ACCOUNT_NUMBER: str = ""
    UPS_USE_SANDBOX: bool = False
    UPS_BASE_URL: Optional[str] = None  # Overrides the sandbox/production URL
    UPS_TOKEN_PATH: str = "/security/v1/oauth/token"
    UPS_RATING_PATH: str = "/rating/v2/shop/rates"
    UPS_TOKEN_REFRESH_BUFFER_SECONDS: int = 30

    def warn_missing_credentials(self) -> None:
        """Log which carrier credentials are unset. Never fails."""
        if "ups" in self.ENABLED_CARRIERS:
            missing = [
                name for name in ("UPS_CLIENT_ID", "UPS_CLIENT_SECRET")
                if not getattr(self, name)
            ]
            if missing:
                logger.warning(f"[CONFIG] Missing UPS settings: {', '.join(missing)}")


settings = Settings()
