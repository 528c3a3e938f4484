# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./snack_shop.db"

    FRONTEND_URL: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # One-time password used to confirm checkout
    OTP_TTL_SECONDS: int = 300
    OTP_LENGTH: int = 6

    # Order number generation (ORD-YYYYMMDD-NNNN)
    ORDER_NUMBER_MAX_ATTEMPTS: int = 5
    ORDER_NUMBER_RETRY_BACKOFF: float = 0.01

    # Inventory thresholds used by the reports
    LOW_STOCK_THRESHOLD: int = 10
    CRITICAL_STOCK_THRESHOLD: int = 5

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

settings = Settings()
