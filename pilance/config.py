from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://pilance:pilance_dev@db:5432/pilance"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Security
    SECRET_KEY: str = "dev-secret-key-not-for-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ALLOWED_ORIGINS: str = "*"

    # Pi Network payment rail
    PI_API_KEY: str = "mock_pi_key"
    PI_API_BASE_URL: str = "https://api.minepi.com/v2"

    # Fees and rewards, one rate per payment channel
    ESCROW_FEE_RATE: Decimal = Decimal("0.08")
    WALLET_FEE_RATE: Decimal = Decimal("0.05")
    PI_NETWORK_FEE: Decimal = Decimal("0.01")
    CURRENCY_DECIMAL_PLACES: int = 7
    REWARD_POINTS_PER_UNIT: int = 5

    # Unit of work
    TRANSACTION_TIMEOUT_SECONDS: float = 10.0

    # App
    APP_ENV: str = "development"
    APP_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
