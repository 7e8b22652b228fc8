from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")
    sql_echo: bool = Field(False, alias="SQL_ECHO")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    enrollment_reference_prefix: str = Field("ENR", alias="ENROLLMENT_REFERENCE_PREFIX")
    late_fee_grace_days: int = Field(30, alias="LATE_FEE_GRACE_DAYS")
    late_fee_rate_percent: int = Field(5, alias="LATE_FEE_RATE_PERCENT")

    # Display formatting only; the engine stores integer minor units.
    currency_symbol: str = Field("₱", alias="CURRENCY_SYMBOL")
    currency_symbol_position: str = Field("before", alias="CURRENCY_SYMBOL_POSITION")  # before | after
    currency_code: str = Field("PHP", alias="CURRENCY_CODE")
    currency_decimals: int = Field(2, alias="CURRENCY_DECIMALS")
    currency_decimal_separator: str = Field(".", alias="CURRENCY_DECIMAL_SEPARATOR")
    currency_thousands_separator: str = Field(",", alias="CURRENCY_THOUSANDS_SEPARATOR")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
