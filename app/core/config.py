from decimal import Decimal
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Attempts for a ledger write that loses a version/sequence race before giving up.
    ledger_write_retries: int = Field(3, alias="LEDGER_WRITE_RETRIES", ge=1)

    # Used when a school has not saved its own late fee policy.
    late_fee_default_enabled: bool = Field(True, alias="LATE_FEE_DEFAULT_ENABLED")
    late_fee_default_daily_rate: Decimal = Field(Decimal("0.01"), alias="LATE_FEE_DEFAULT_DAILY_RATE")
    late_fee_default_max: Optional[Decimal] = Field(Decimal("0.5"), alias="LATE_FEE_DEFAULT_MAX")
    late_fee_default_grace_days: int = Field(0, alias="LATE_FEE_DEFAULT_GRACE_DAYS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
