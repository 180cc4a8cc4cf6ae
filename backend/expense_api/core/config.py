"""
Application configuration settings
"""

from pydantic_settings import BaseSettings
from typing import List, Optional, Dict, Any


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application Settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    API_VERSION: str = "0.1.0"
    TIMEZONE: str = "Asia/Tokyo"
    ALLOWED_HOSTS: str = "http://localhost:1420,tauri://localhost"

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./data/expenses.db"

    # Redis Configuration (Celery broker)
    REDIS_URL: str = "redis://localhost:6379"

    # Google OAuth
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None

    # Session tokens
    SESSION_ENCRYPTION_KEY: str = "dev-session-encryption-key-change-me"
    SESSION_EXPIRATION_DAYS: int = 30

    # File Upload
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB
    ALLOWED_FILE_TYPES: str = "image/jpeg,image/png,image/gif,application/pdf"
    MAX_FILES_PER_REQUEST: int = 10

    # Rate Limiting
    RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = 300

    # Receipt storage (Cloudflare R2 / S3 compatible)
    R2_ENDPOINT: Optional[str] = None
    R2_ACCESS_KEY_ID: Optional[str] = None
    R2_SECRET_ACCESS_KEY: Optional[str] = None
    R2_BUCKET_NAME: Optional[str] = None
    R2_REGION: str = "auto"
    R2_PUBLIC_URL: Optional[str] = None
    LOCAL_STORAGE_DIR: str = "./data/receipts"
    PUBLIC_BASE_URL: str = "https://localhost:8000"

    # Desktop updater (GitHub releases proxy)
    GITHUB_TOKEN: Optional[str] = None
    UPDATER_REPO_OWNER: str = "expense-tracker"
    UPDATER_REPO_NAME: str = "expense-tracker-desktop"

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_HOSTS.split(",") if origin.strip()]

    @property
    def allowed_file_types(self) -> List[str]:
        return [t.strip() for t in self.ALLOWED_FILE_TYPES.split(",") if t.strip()]

    @property
    def storage_bucket_configured(self) -> bool:
        return all([
            self.R2_ENDPOINT,
            self.R2_ACCESS_KEY_ID,
            self.R2_SECRET_ACCESS_KEY,
            self.R2_BUCKET_NAME,
        ])

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


SECRET_SETTINGS = (
    "GOOGLE_CLIENT_SECRET",
    "SESSION_ENCRYPTION_KEY",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "GITHUB_TOKEN",
)


def get_config_for_display(config: "Settings") -> Dict[str, Any]:
    """
    Settings as a dict with secret values masked, safe for logging
    """
    data = config.model_dump()
    for key in SECRET_SETTINGS:
        if data.get(key):
            data[key] = "***"
    return data


# Create settings instance
settings = Settings()

# Validate required settings in production
if settings.ENVIRONMENT == "production":
    required_settings = [
        "SESSION_ENCRYPTION_KEY",
        "GOOGLE_CLIENT_ID",
        "GOOGLE_CLIENT_SECRET",
    ]

    missing_settings = []
    for setting in required_settings:
        if not getattr(settings, setting):
            missing_settings.append(setting)

    if missing_settings:
        raise ValueError(f"Missing required production settings: {', '.join(missing_settings)}")
