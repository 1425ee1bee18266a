from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Service settings, read from the environment and ``<repo>/.env``."""

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    database_url: str = "sqlite:///./payments.db"

    # HMAC key shared with the checkout flow
    payment_signing_secret: Optional[str] = None

    jwt_secret: Optional[str] = None

    # Orders become Stripe PaymentIntents when set
    stripe_secret_key: Optional[str] = None

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


settings = Settings()
