"""
Configuration management for the application.
Loads settings from environment variables using Pydantic Settings.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./smartdash.sqlite"

    @property
    def database_url_async(self) -> str:
        """
        Transform DATABASE_URL to use the appropriate async driver.
        - PostgreSQL: postgresql+asyncpg://...
        - SQLite: sqlite+aiosqlite:///...
        """
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif self.DATABASE_URL.startswith("postgres://"):
            return self.DATABASE_URL.replace("postgres://", "postgresql+asyncpg://", 1)
        elif self.DATABASE_URL.startswith("sqlite://"):
            return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return self.DATABASE_URL

    # Security
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # 8 hours

    # Application
    APP_NAME: str = "SmartDash Admin API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"
    SEED_DEMO_DATA: bool = False

    # Frontend URL (browser routes such as /login live there)
    FRONTEND_URL: str = "http://localhost:5173"

    # Local time used for "today" / "this week" / "this year" windows
    TIMEZONE: str = "Africa/Kigali"

    # Cloudinary (profile images)
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_UPLOAD_PRESET: str = "smartstock"
    CLOUDINARY_FOLDER: str = "smartstock/users"

    # Federated sign-in (Google). Empty disables the audience check.
    GOOGLE_CLIENT_ID: str = ""

    # Bootstrap Super Admin Configuration
    BOOTSTRAP_SUPER_ADMIN_EMAIL: str = ""
    BOOTSTRAP_SUPER_ADMIN_PASSWORD_HASH: str = ""
    BOOTSTRAP_SUPER_ADMIN_FULL_NAME: str = "Platform Administrator"

    @property
    def cors_origins_list(self) -> list[str]:
        # Strip whitespace from each origin to prevent configuration errors
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True


# Singleton instance - import this in other modules
settings = Settings()
