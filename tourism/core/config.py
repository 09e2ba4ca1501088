from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Tourism Marketplace API"
    # Comma-separated origins for CORS (e.g. https://tourism.example.in). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    GUEST_TOKEN_EXPIRE_HOURS: int = 12

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Pricing (GST + platform fee on top of base price)
    TAX_RATE: Decimal = Decimal("0.18")
    PLATFORM_FEE_RATE: Decimal = Decimal("0.05")
    DEFAULT_CURRENCY: str = "INR"

    # Cancellation policy fallbacks when a product leaves them unset
    DEFAULT_CANCELLATION_DEADLINE_HOURS: int = 24
    DEFAULT_REFUND_PERCENTAGE: int = 100

    # When False any authorized caller may set any status; when True the lifecycle table applies.
    ENFORCE_STATUS_TRANSITIONS: bool = False

    # Stripe (payment intents + webhooks)
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    PAYMENTS_SANDBOX: bool = False  # If True, skip real Stripe calls and treat intents as succeeded

    EMAIL_ENABLED: bool = True
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "bookings@tourism.local"

    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""

    CLIENT_BASE_URL: str = ""  # e.g. https://tourism.example.in - used for links in emails

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() in ("prod", "production")


settings = Settings()
