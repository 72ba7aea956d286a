"""Configuration management for the Mindbridge booking service."""
import os
from typing import Optional
from functools import lru_cache
from pydantic import BaseModel, Field, validator, root_validator
from dotenv import load_dotenv

load_dotenv()

AIRWALLEX_API_URLS = {
    "demo": "https://api-demo.airwallex.com",
    "staging": "https://api-staging.airwallex.com",
    "prod": "https://api.airwallex.com",
}


class Config(BaseModel):
    """Application configuration with validation."""

    # Flask settings
    debug: bool = Field(default=False)
    testing: bool = Field(default=False)
    port: int = Field(default=5000, ge=1024, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Firebase settings
    firebase_credentials_path: Optional[str] = Field(default=None)

    # Airwallex settings
    airwallex_client_id: str = Field(..., min_length=10)
    airwallex_api_key: str = Field(..., min_length=10)
    airwallex_env: str = Field(default="demo")
    airwallex_api_url: Optional[str] = Field(default=None)
    airwallex_sdk_url: str = Field(default="https://static.airwallex.com/components/sdk/v1/index.js")
    airwallex_request_timeout_seconds: float = Field(default=30.0, gt=0)
    token_refresh_margin_seconds: int = Field(default=60, ge=0)

    # Synthetic intents for non-production environments only
    sandbox_mode: bool = Field(default=False)

    # Settlement monitoring
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    poll_max_attempts: int = Field(default=12, ge=1)
    poll_timeout_seconds: float = Field(default=60.0, gt=0)
    status_cache_ttl_seconds: float = Field(default=2.0, ge=0)

    # Payment widget
    widget_script_load_attempts: int = Field(default=3, ge=1)
    widget_script_retry_delay_seconds: float = Field(default=1.0, ge=0)

    # Booking settings
    default_currency: str = Field(default="HKD", min_length=3, max_length=3)
    platform_commission_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    checkout_session_ttl_minutes: int = Field(default=30, ge=1)

    # Security settings
    api_key_header: str = Field(default="X-API-Key")
    api_keys: list[str] = Field(default_factory=list)
    user_id_header: str = Field(default="X-User-Id")
    enable_rate_limiting: bool = Field(default=True)
    rate_limit_per_minute: int = Field(default=60)

    # Sentry APM settings
    sentry_dsn: Optional[str] = Field(default=None)
    sentry_environment: str = Field(default="production")
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    class Config:
        env_prefix = ""
        case_sensitive = False

    @validator("api_keys", "cors_origins", pre=True)
    def parse_comma_separated(cls, v):
        """Parse comma-separated values from environment variables."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v or []

    @validator("debug", "testing", "enable_rate_limiting", "sandbox_mode", pre=True)
    def parse_bool(cls, v):
        """Parse boolean values from environment variables."""
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return v

    @validator("airwallex_env")
    def validate_airwallex_env(cls, v):
        """Only the three Airwallex environments are accepted."""
        if v not in AIRWALLEX_API_URLS:
            raise ValueError(f"Unknown Airwallex environment: {v}")
        return v

    @validator("default_currency")
    def upper_currency(cls, v):
        return v.upper()

    @validator("firebase_credentials_path")
    def validate_firebase_path(cls, v):
        """Ensure Firebase credentials file exists."""
        if v and not os.path.exists(v):
            raise ValueError(f"Firebase credentials file not found: {v}")
        return v

    @root_validator(skip_on_failure=True)
    def check_sandbox_scope(cls, values):
        """Synthetic intents must never be reachable against the live processor."""
        if values.get("sandbox_mode") and values.get("airwallex_env") == "prod":
            raise ValueError("sandbox_mode cannot be enabled with airwallex_env=prod")
        if not values.get("airwallex_api_url"):
            values["airwallex_api_url"] = AIRWALLEX_API_URLS[values["airwallex_env"]]
        return values


@lru_cache()
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config(
        debug=os.getenv("DEBUG", "false"),
        testing=os.getenv("TESTING", "false"),
        port=int(os.getenv("PORT", "5000")),
        cors_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000"),
        firebase_credentials_path=os.getenv("FIREBASE_CREDENTIALS_PATH"),
        airwallex_client_id=os.getenv("AIRWALLEX_CLIENT_ID"),
        airwallex_api_key=os.getenv("AIRWALLEX_API_KEY"),
        airwallex_env=os.getenv("AIRWALLEX_ENV", "demo"),
        airwallex_api_url=os.getenv("AIRWALLEX_API_URL"),
        sandbox_mode=os.getenv("SANDBOX_MODE", "false"),
        poll_interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", "5")),
        poll_max_attempts=int(os.getenv("POLL_MAX_ATTEMPTS", "12")),
        poll_timeout_seconds=float(os.getenv("POLL_TIMEOUT_SECONDS", "60")),
        status_cache_ttl_seconds=float(os.getenv("STATUS_CACHE_TTL_SECONDS", "2")),
        widget_script_load_attempts=int(os.getenv("WIDGET_SCRIPT_LOAD_ATTEMPTS", "3")),
        widget_script_retry_delay_seconds=float(os.getenv("WIDGET_SCRIPT_RETRY_DELAY_SECONDS", "1")),
        default_currency=os.getenv("DEFAULT_CURRENCY", "HKD"),
        platform_commission_rate=float(os.getenv("PLATFORM_COMMISSION_RATE", "0.5")),
        checkout_session_ttl_minutes=int(os.getenv("CHECKOUT_SESSION_TTL_MINUTES", "30")),
        api_keys=os.getenv("API_KEYS", ""),
        api_key_header=os.getenv("API_KEY_HEADER", "X-API-Key"),
        user_id_header=os.getenv("USER_ID_HEADER", "X-User-Id"),
        rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "60")),
        enable_rate_limiting=os.getenv("ENABLE_RATE_LIMITING", "true"),
        sentry_dsn=os.getenv("SENTRY_DSN"),
        sentry_environment=os.getenv("SENTRY_ENVIRONMENT", "production"),
    )
