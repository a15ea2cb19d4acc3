from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_env_path),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str
    REDIS_URL: str
    LOG_LEVEL: str = "INFO"
    APP_URL: str = "http://localhost:3000"

    # Identity provider (HS256 access tokens)
    AUTH_JWT_SECRET: str
    AUTH_JWT_AUDIENCE: str = "authenticated"

    ENCRYPTION_KEY: str

    ANTHROPIC_API_KEY: str
    AI_MODEL: str = "claude-haiku-4-5-20251001"
    AI_MAX_TOKENS: int = 2048

    GOOGLE_CLIENT_ID: str
    GOOGLE_CLIENT_SECRET: str
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/google-calendar/callback"

    STORAGE_ROOT: str = "./storage"
    STORAGE_SIGNING_SECRET: str
    SIGNED_URL_TTL_SECONDS: int = 3600

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAIL_SENDER: str = "Tarely <no-reply@tarely.app>"


settings = Settings()
