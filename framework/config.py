from typing import Optional
from urllib.parse import quote_plus
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- Basic configuration ---
    APP_NAME: str = "Module Access Service"
    APP_DESCRIPTION: str = "Tenant module access, subscription plans and module overrides"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"  # development, production, testing
    DEBUG: bool = True
    SECRET_KEY: str = "your-super-secret-key-change-it-in-production"
    JWT_ALGORITHM: str = "HS256"

    # --- Database (MySQL/SQLModel) ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = "root"
    DB_NAME: str = "module_access"
    DB_POOL_RECYCLE_SECONDS: int = 1800

    @property
    def DATABASE_URL(self) -> str:
        # Build async MySQL connection URL
        safe_password = quote_plus(self.DB_PASSWORD)
        return f"mysql+aiomysql://{self.DB_USER}:{safe_password}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # --- Query cache (Redis) ---
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    QUERY_CACHE_PREFIX: str = "qc"
    QUERY_CACHE_TTL_SECONDS: int = 300

    # --- Module access ---
    ACCESS_CHECK_TIMEOUT_SECONDS: float = 15.0
    # Overrides win over plan permissions; False reproduces plan-only resolution
    HONOR_MODULE_OVERRIDES: bool = True

    # --- AI services ---
    AI_MATCHING_URL: Optional[str] = None
    AI_MATCHING_API_KEY: Optional[str] = None
    AI_REQUEST_TIMEOUT_SECONDS: float = 20.0
    # Module a tenant needs before smart matching is offered
    AI_MATCHING_MODULE: str = "smart_talent_matching"

    # --- Cookie ---
    ACCESS_TOKEN_COOKIE_NAME: str = "access_token"

    # --- Logging ---
    LOG_DIR: str = "logs"

    # --- API route prefixes (optional, overridable in private projects) ---
    API_V1_AUTH_PREFIX: str = "/api/v1/auth"
    API_V1_MODULES_PREFIX: str = "/api/v1/modules"
    API_V1_SUBSCRIPTIONS_PREFIX: str = "/api/v1/subscriptions"
    API_V1_ANALYTICS_PREFIX: str = "/api/v1/analytics"
    API_V1_AI_PREFIX: str = "/api/v1/ai"

    # --- Gunicorn process name (optional) ---
    GUNICORN_PROC_NAME: Optional[str] = None  # Fallback to APP_NAME when empty

    # --- Pydantic ---
    # Load env from project root .env; priority: env vars > .env > defaults
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )


# Singleton settings instance
settings = Settings()
