"""
Application Configuration

Loads environment variables using pydantic-settings.
All settings can be overridden via a .env file or environment variables.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Generation service (Vertex AI Gemini)
    GOOGLE_CLOUD_PROJECT: str = ""
    GOOGLE_CLOUD_LOCATION: str = "us-central1"
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GENERATION_TEMPERATURE: float = 0.7

    # Ephemeral session tier: "memory" or "redis"
    SESSION_BACKEND: str = "memory"
    SESSION_TTL_SECONDS: int = 3600
    SESSION_CACHE_MAX_ENTRIES: int = 1024
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "patient-sim:session:"

    # Durable archive tier: "memory" or "mongo"
    ARCHIVE_BACKEND: str = "memory"
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DATABASE: str = "patient_sim"

    # Identity tokens
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    TOKEN_TTL_SECONDS: int = 3600
    ALLOWED_USERS: str = "doctor"
    COOKIE_SECURE: bool = True

    CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=str(_ENV_FILE), extra="ignore")

    @property
    def allowed_users(self) -> set[str]:
        """Usernames accepted by the login endpoint."""
        return {u.strip() for u in self.ALLOWED_USERS.split(",") if u.strip()}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
