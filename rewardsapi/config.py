from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="rewardsapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Rewards Ledger API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    APP_URL: str = "https://reimburseme.ai"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DATABASE: str = "postgres"

    # 직접 지정하면 POSTGRES_* 조합보다 우선 (테스트/로컬 sqlite 등)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    # Security
    SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    CRON_SECRET: str = ""

    # Referral
    REFERRAL_CODE_MAX_ATTEMPTS: int = 10
    RETENTION_30D_DAYS: int = 30
    RETENTION_90D_DAYS: int = 90

    # Point Management
    MONTHLY_EARNING_CAP: int = 5000  # 월간 적립 상한 (earn 기준)
    POINTS_HISTORY_MAX_LIMIT: int = 100

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_CURRENCY: str = "usd"
    STRIPE_TIMEOUT_SECONDS: int = 10


settings = Settings()
