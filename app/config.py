import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 10)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)

    @property
    def JWT_SECRET(self) -> str:
        return os.getenv("JWT_SECRET", "change-me-in-production")

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip().strip("'\"") for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def APP_ENV(self) -> str:
        return os.getenv("APP_ENV", "development").strip().lower()

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def DEFAULT_CURRENCY(self) -> str:
        return os.getenv("DEFAULT_CURRENCY", "GBP")

    @property
    def TOKEN_PRICE(self) -> Decimal:
        return Decimal(os.getenv("TOKEN_PRICE", "5"))

    @property
    def MIN_BID_MESSAGE_LENGTH(self) -> int:
        return self._get_int("MIN_BID_MESSAGE_LENGTH", 150)

    @property
    def SELLER_PLUS_DAYS(self) -> int:
        return self._get_int("SELLER_PLUS_DAYS", 30)

    @property
    def REQUIRE_BUYER_ACCEPTANCE(self) -> bool:
        return self._get_bool("REQUIRE_BUYER_ACCEPTANCE", False)

    @property
    def STRIPE_PAYMENT_LINK_BASE(self) -> str:
        return os.getenv("STRIPE_PAYMENT_LINK_BASE", "https://buy.stripe.com/test_payment_link")

    @property
    def PAYPAL_CHECKOUT_URL(self) -> str:
        return os.getenv("PAYPAL_CHECKOUT_URL", "https://www.paypal.com/cgi-bin/webscr")

    @property
    def NOTIFICATION_DISPATCH_BATCH(self) -> int:
        return self._get_int("NOTIFICATION_DISPATCH_BATCH", 100)


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == "change-me-in-production":
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
