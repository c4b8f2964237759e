# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - STRIPE_SECRET_KEY (without it, card orders cannot be verified and
        payouts fall back to manual settlement)
    """

    PROJECT_NAME: str = "Dropship Fulfillment Backend"
    API_V1_STR: str = "/api/v1"

    # Supabase Postgres
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"
    OPERATOR_ROLE: str = "operator"

    # Payment processor
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_TIMEOUT_SECONDS: float = 30.0
    PAYOUT_CURRENCY: str = "usd"

    # Fulfillment policy
    DEFAULT_PROFIT_MARGIN: float = 0.25
    ORDER_BATCH_SIZE: int = 10
    STALE_ORDER_MINUTES: int = 30

    # Supplier dispatch
    SUPPLIER_MAX_ATTEMPTS: int = 3
    SUPPLIER_RETRY_DELAY_SECONDS: float = 1.0
    SUPPLIER_TIMEOUT_SECONDS: float = 15.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
