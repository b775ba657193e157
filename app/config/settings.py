from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application
    ENVIRONMENT: str = "development"
    NAME: str = "DocuRequest Server"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    """Pydantic v2 doesn't support parsing List[str] from a plain comma-separated string by default anymore."""
    ALLOWED_HOSTS: Union[str, List[str]] = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"
    LOG_CONFIG_PATH: str = "logging_config.json"

    # Database
    DATABASE_URL: str = "sqlite:///./docurequest.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    CREATE_TABLES_ON_STARTUP: bool = False

    # Brevo transactional e-mail
    BREVO_API_KEY: str = ""
    BREVO_API_URL: str = "https://api.brevo.com/v3/smtp/email"
    EMAIL_SENDER_ADDRESS: str = "no-reply@docurequest.local"
    EMAIL_SENDER_NAME: str = "DocuRequest"

    # iProg SMS
    IPROG_API_KEY: str = ""
    IPROG_SMS_URL: str = "https://sms.iprogtech.com/api/v1/sms_messages"

    # Notifications
    NOTIFICATION_DISPATCH_MODE: str = "inline"  # inline | celery
    NOTIFICATION_TIMEOUT_SECONDS: float = 15.0

    # Clearance & release policy
    CLEARANCE_VALIDITY_MONTHS: int = 6
    DEFAULT_PICKUP_BUSINESS_DAYS: int = 3

    # Redis & Celery
    REDIS_PASSWORD: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @field_validator("ALLOWED_HOSTS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if not v:
            return []
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    @field_validator("NOTIFICATION_DISPATCH_MODE")
    def validate_dispatch_mode(cls, v: str) -> str:
        if v not in ("inline", "celery"):
            raise ValueError("NOTIFICATION_DISPATCH_MODE must be 'inline' or 'celery'")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


settings = Settings()
