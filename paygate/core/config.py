"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    APP_NAME: str = "Payment Gateway"
    DEBUG: bool = False

    # CORS
    # Comma-separated list of allowed origins (e.g. "https://shop.example.com")
    # Leave empty to disable CORS entirely (server-to-server usage).
    ALLOWED_ORIGINS: str = ""

    # Redis - session store, idempotency ledger, metrics counters
    REDIS_URL: str = "redis://localhost:6379/0"

    # TTLs בשניות
    SESSION_TTL_SECONDS: int = 3600            # שעה - checkout session
    SUBSCRIPTION_TTL_SECONDS: int = 86400 * 30  # 30 יום - מטא-דאטה של מנוי
    EVENT_TTL_SECONDS: int = 86400 * 7          # 7 ימים - חלון הגנת replay
    METRICS_TTL_SECONDS: int = 86400            # מונים יומיים
    ERROR_METRICS_TTL_SECONDS: int = 86400 * 30

    # Paddle
    PADDLE_API_KEY: str = ""
    PADDLE_WEBHOOK_SECRET: str = ""
    PADDLE_SANDBOX: bool = False

    # PayPal
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_CLIENT_SECRET: str = ""
    PAYPAL_WEBHOOK_ID: str = ""
    PAYPAL_SANDBOX: bool = False
    PAYPAL_BRAND_NAME: str = "Payment System"

    # Stripe (placeholder - not implemented yet)
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # Internal backend (system of record)
    INTERNAL_BACKEND_URL: str = "http://localhost:8080"
    INTERNAL_SECRET: str = ""

    DEFAULT_CURRENCY: str = "USD"

    # Timeouts - אף קריאה חיצונית לא ממתינה ללא הגבלה
    PROCESSOR_TIMEOUT_SECONDS: float = 15.0
    BACKEND_NOTIFY_TIMEOUT_SECONDS: float = 10.0

    # Webhook signatures
    WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS: int = 300
    # תפוגת access token מוקדמת ביחס למה שהספק הצהיר
    TOKEN_EXPIRY_MARGIN_SECONDS: int = 300

    # Rate limiting - webhooks
    WEBHOOK_RATE_LIMIT_MAX_REQUESTS: int = 100  # מספר בקשות מקסימלי לכל IP
    WEBHOOK_RATE_LIMIT_WINDOW_SECONDS: int = 60  # חלון זמן בשניות

    @field_validator("INTERNAL_BACKEND_URL", mode="before")
    @classmethod
    def normalize_backend_url(cls, v: str) -> str:
        """host:port בלבד (Render fromService) - מוסיף http:// אם חסר"""
        if v and not v.startswith("http"):
            v = f"http://{v}"
        return v.rstrip("/") if v else v

    @field_validator("DEFAULT_CURRENCY", mode="before")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """קוד מטבע ISO-4217 - שלוש אותיות גדולות"""
        v = (v or "").strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"DEFAULT_CURRENCY='{v}' is not a 3-letter currency code")
        return v

    @field_validator(
        "SESSION_TTL_SECONDS",
        "SUBSCRIPTION_TTL_SECONDS",
        "EVENT_TTL_SECONDS",
        "METRICS_TTL_SECONDS",
        mode="after",
    )
    @classmethod
    def validate_positive_ttl(cls, v: int) -> int:
        """TTL חייב להיות חיובי - אחרת SET EX ב-Redis נכשל"""
        if v < 1:
            raise ValueError("TTL values must be at least 1 second")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """ולידציות חוצות-שדות.

        1. סוד webhook חסר - אזהרה (webhook-ים של הספק ייכשלו באימות).
        2. PayPal ללא WEBHOOK_ID - אימות מרוחק לא אפשרי.
        3. INTERNAL_SECRET ריק - ה-backend מקבל התראות ללא אימות.
        """
        import warnings

        if self.PADDLE_API_KEY and not self.PADDLE_WEBHOOK_SECRET:
            warnings.warn(
                "PADDLE_WEBHOOK_SECRET ריק - webhook-ים של Paddle יידחו באימות חתימה.",
                stacklevel=2,
            )

        if self.PAYPAL_CLIENT_ID and not self.PAYPAL_WEBHOOK_ID:
            warnings.warn(
                "PAYPAL_WEBHOOK_ID ריק - אימות webhook מול PayPal ייכשל.",
                stacklevel=2,
            )

        if not self.INTERNAL_SECRET and not self.DEBUG:
            warnings.warn(
                "INTERNAL_SECRET ריק - התראות ל-backend נשלחות ללא כותרת אימות.",
                stacklevel=2,
            )

        return self

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
