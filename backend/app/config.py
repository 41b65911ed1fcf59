from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Database
    # DATABASE_URL wins when set; otherwise the PostgreSQL URL is assembled below.
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "loopgate"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "loopgate"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    AUTO_MIGRATE: bool = True

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # CORS
    ALLOWED_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"

    # Loop detection
    LOOP_THRESHOLD: int = 3
    LOOP_WINDOW_SECONDS: int = 60
    RECENT_ERROR_LIMIT: int = 5
    UPSTREAM_FAILURE_LIMIT: int = 10
    ACTION_LOOP_THRESHOLD: int = 3

    # Sessions
    DEFAULT_COOLDOWN_MINUTES: int = 5
    DEFAULT_SESSION_ID: str = "default"

    # Outbound HTTP
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0
    NOTIFY_TIMEOUT_SECONDS: float = 5.0
    NOTIFY_MAX_WORKERS: int = 4

    # Cost estimation seed file (YAML), loaded at startup when set
    COST_CONFIG_PATH: Optional[str] = None

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        env_file = ".env"
        extra = "allow"  # Allow extra environment variables


settings = Settings()
