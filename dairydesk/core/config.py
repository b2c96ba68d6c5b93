from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator


def _parse_bool(v):
    if isinstance(v, str):
        return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
    return bool(v)


class Settings(BaseSettings):
    # Database settings
    DATABASE_URL: Optional[str] = None  # Si se define, reemplaza la URL de PostgreSQL
    POSTGRES_USER: str = 'dairy_user'
    POSTGRES_PASSWORD: str = 'dairy_pass'
    POSTGRES_DB: str = 'dairy_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432

    # Redis settings (broker de Celery)
    REDIS_HOST: str = 'redis'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Ledger / billing rules
    ALLOW_OVERPAYMENT: bool = False
    ENFORCE_CREDIT_LIMIT: bool = False
    LEDGER_LOCK_TIMEOUT_MS: int = 5000  # Solo aplica en PostgreSQL

    # Document numbering
    ORDER_NUMBER_PREFIX: str = 'ORD'
    INVOICE_NUMBER_PREFIX: str = 'INV'
    RECEIPT_NUMBER_PREFIX: str = 'RCP'

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", "ALLOW_OVERPAYMENT", "ENFORCE_CREDIT_LIMIT", mode="before")
    @classmethod
    def parse_flags(cls, v):
        return _parse_bool(v)


settings = Settings()
