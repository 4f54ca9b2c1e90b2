# evalengine/config.py
from datetime import date
from pydantic_settings import BaseSettings
from typing import Optional
from pydantic import Field

class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30)

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./evaluations.db")
    SQLALCHEMY_DATABASE_URL: Optional[str] = None
    SQL_ECHO: bool = Field(False)

    LOG_LEVEL: str = Field("INFO")

    # Due-date classification and dashboard badges
    DUE_SOON_DAYS: int = Field(7)
    DASHBOARD_UPCOMING_LIMIT: int = Field(5)

    # Suggested scheduling for the "new evaluation" form
    EVALUATION_FREQUENCY_DAYS: int = Field(90)
    EVALUATION_CYCLE_START: str = Field(
        "hire_date", pattern="^(hire_date|last_evaluation|calendar_year|fiscal_year|custom)$"
    )
    EVALUATION_CUSTOM_START_DATE: Optional[date] = None

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.SQLALCHEMY_DATABASE_URL or self.DATABASE_URL or "sqlite+aiosqlite:///./evaluations.db"
        # Ensure asyncpg is used
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

settings = Settings()
