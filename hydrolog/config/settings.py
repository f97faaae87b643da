from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "HydroLog"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development" # "production" switches logs to JSON and cookies to secure
    DATABASE_URL: str = "sqlite:///./hydrolog.db"
    SECRET_KEY: str = "change-me-hydrolog-secret-key-at-least-32-bytes"
    ALGORITHM: str = "HS256"
    SESSION_EXPIRE_DAYS: int = 7
    COOKIE_NAME: str = "auth_token"
    COOKIE_SECURE: bool = False
    CORS_ORIGINS: str = "*" # comma separated
    LOG_LEVEL: str = "INFO"
    DEFAULT_SYSTEM_NAME: str = "My Hydroponic System"
    DEFAULT_POSITIONS_PER_ROW: List[int] = [4, 4, 4]
    ADMIN_EMAIL: str = "admin@hydrolog.dev"
    ADMIN_PASSWORD: Optional[str] = None # required by seed_db.py in production

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        return origins or ["*"]

DEFAULT_SECRET_KEY = Settings.model_fields["SECRET_KEY"].default

settings = Settings()
