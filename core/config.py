# ==================================================================================
# core/config.py - Application configuration (Pydantic v2 settings)
# ==================================================================================
from typing import List, Optional, Tuple
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import EmailStr, ValidationError
import sys


class Settings(BaseSettings):
    # ------------------------
    # DATABASE CONFIG
    # ------------------------
    DATABASE_URL: str = "sqlite:///./workboard.db"

    # ------------------------
    # SECURITY CONFIG
    # ------------------------
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ------------------------
    # SENDGRID EMAIL CONFIG
    # ------------------------
    SENDGRID_API_KEY: Optional[str] = None
    MAIL_FROM: Optional[EmailStr] = None

    # ------------------------
    # FRONTEND CONFIG
    # ------------------------
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # ------------------------
    # WORKSPACE / PLAN CONFIG
    # ------------------------
    INVITE_EXPIRE_DAYS: int = 7
    DEFAULT_WORKSPACE_PLAN: str = "free"

    FREE_MAX_MEMBERS: int = 5
    FREE_MAX_PROJECTS: int = 3
    PRO_MAX_MEMBERS: int = 25
    PRO_MAX_PROJECTS: int = 50
    ENTERPRISE_MAX_MEMBERS: int = 1000
    ENTERPRISE_MAX_PROJECTS: int = 1000

    def plan_limits(self, plan: str) -> Tuple[int, int]:
        """Return (member_limit, project_limit) for a subscription plan."""
        plan = (plan or "free").lower()
        if plan == "enterprise":
            return self.ENTERPRISE_MAX_MEMBERS, self.ENTERPRISE_MAX_PROJECTS
        if plan == "pro":
            return self.PRO_MAX_MEMBERS, self.PRO_MAX_PROJECTS
        return self.FREE_MAX_MEMBERS, self.FREE_MAX_PROJECTS

    @property
    def EMAIL_ENABLED(self) -> bool:
        return bool(self.SENDGRID_API_KEY and self.MAIL_FROM)

    # ------------------------
    # ENVIRONMENT SETTINGS
    # ------------------------
    ENVIRONMENT: str = "development"  # 'development' | 'production' | 'test'
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @property
    def IS_PRODUCTION(self) -> bool:
        """Convenience helper to check if running in production"""
        return self.ENVIRONMENT.lower() == "production"

    # ------------------------
    # Pydantic v2 Settings
    # ------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# ------------------------
# Global Settings Loader
# ------------------------
try:
    settings = Settings()
except ValidationError as e:
    print("❌ Environment configuration error: missing or invalid settings!")
    print(e)
    sys.exit(1)
