"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List
import warnings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "BizPulse API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Database (required)
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_CONNECT_TIMEOUT: int = 10  # seconds

    # Security (SECRET_KEY is required)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    # CORS
    CORS_ORIGIN: str = "http://localhost:5173"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_AUTH_MAX_REQUESTS: int = 5
    TRUSTED_PROXIES: str = ""  # comma-separated proxy addresses allowed to set X-Forwarded-For

    # Uploads
    MAX_FILE_SIZE: int = 5 * 1024 * 1024
    UPLOAD_PATH: str = "uploads/"
    UPLOAD_URL_PREFIX: str = "/uploads"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]

    @property
    def trusted_proxies_list(self) -> List[str]:
        return [proxy.strip() for proxy in self.TRUSTED_PROXIES.split(",") if proxy.strip()]

    @property
    def database_url(self) -> str:
        """Get properly formatted database URL"""
        url = self.DATABASE_URL
        if url.startswith("file:"):
            return f"sqlite:///{url[5:]}"
        # Heroku-style URLs
        if url.startswith("postgres://"):
            return "postgresql://" + url[len("postgres://"):]
        return url

    @property
    def rate_limit_window_seconds(self) -> int:
        return max(1, self.RATE_LIMIT_WINDOW_MS // 1000)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT.lower() == "production"

    def validate_security_settings(self):
        """Validate security settings and warn about insecure defaults"""
        default_keys = [
            "your-super-secret-key-change-in-production-min-32-chars",
            "dev-secret-key-change-in-production",
            "secret-key",
            "change-me",
        ]

        if self.SECRET_KEY in default_keys:
            if self.is_production:
                raise ValueError(
                    "CRITICAL: Default SECRET_KEY detected in production! "
                    "Set the SECRET_KEY environment variable to a secure random value."
                )
            warnings.warn(
                "WARNING: Using default SECRET_KEY. "
                "Set SECRET_KEY environment variable for production.",
                UserWarning
            )

        if len(self.SECRET_KEY) < 32:
            if self.is_production:
                raise ValueError(
                    "CRITICAL: SECRET_KEY is too short for production! "
                    "Use at least 32 characters."
                )
            warnings.warn(
                "WARNING: SECRET_KEY should be at least 32 characters.",
                UserWarning
            )

        if self.is_production and self.DEBUG:
            raise ValueError(
                "CRITICAL: DEBUG mode is enabled in production! "
                "Set DEBUG=False for production environment."
            )

        return True

    class Config:
        env_file = ".env"
        case_sensitive = True


# Missing DATABASE_URL or SECRET_KEY raises here and aborts startup
settings = Settings()

try:
    settings.validate_security_settings()
except ValueError as e:
    if settings.is_production:
        raise
    warnings.warn(str(e), UserWarning)
