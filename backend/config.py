# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Literal, Optional
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./reservations.db"

    # Cart lease and expiry sweep
    CART_TTL_MINUTES: int = 30
    CART_SWEEP_POLICY: Literal["lazy", "scheduled", "both"] = "both"
    CART_SWEEP_INTERVAL_SECONDS: int = 180

    # Upper bound for waiting on a row lock before the request fails as retryable
    LOCK_TIMEOUT_MS: int = 3000

    # Shared secret used by the payment processor to sign notifications
    PAYMENT_WEBHOOK_SECRET: str = ""
    CRON_SECRET: str = ""

    # Downstream receipt/email service notified after an order is committed
    ORDER_NOTIFY_URL: Optional[str] = None
    ORDER_NOTIFY_TIMEOUT_SECONDS: float = 5.0

    DEFAULT_SHIPPING_COUNTRY: str = "Sri Lanka"
    CURRENCY: str = "LKR"

    AUTO_CREATE_TABLES: bool = True
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra: ClassVar[str] = "ignore"

    @property
    def sweep_is_lazy(self) -> bool:
        return self.CART_SWEEP_POLICY in ("lazy", "both")

    @property
    def sweep_is_scheduled(self) -> bool:
        return self.CART_SWEEP_POLICY in ("scheduled", "both")

settings = Settings()
