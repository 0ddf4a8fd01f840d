import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class ConfigError(RuntimeError):
    """Raised at startup when the configuration cannot be used."""


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as park.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "park.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    APP_NAME = os.getenv("APP_NAME", "Bhimson's Agro Park")
    APP_URL = os.getenv("APP_URL", "https://bhimsonsagropark.com")

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "park_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 30 minutes
    IDLE_TIMEOUT_SECONDS = 30 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE")

    # Brute-force protection
    MAX_LOGIN_ATTEMPTS = 5
    LOCKOUT_MINUTES = 5

    # Simple IP rate limit for login endpoint
    LOGIN_RATE_WINDOW_SECONDS = 60
    LOGIN_RATE_MAX_REQUESTS = 15

    # Password policy
    PASSWORD_MIN_LEN = 8
    PASSWORD_RESET_MINUTES = 30
    PROFILE_REQUIRED_FIELDS = ["full_name", "phone_number"]

    # Pricing
    CURRENCY = "INR"
    TAX_PERCENTAGE = os.getenv("TAX_PERCENTAGE", "18")
    CONVENIENCE_FEE = os.getenv("CONVENIENCE_FEE", "50")
    CHILD_PRICE_PERCENTAGE = os.getenv("CHILD_PRICE_PERCENTAGE", "50")

    # Booking window / cancellation policy
    MAX_GUESTS_PER_BOOKING = int(os.getenv("MAX_GUESTS_PER_BOOKING", "20"))
    MIN_ADVANCE_HOURS = int(os.getenv("MIN_ADVANCE_HOURS", "24"))
    ADVANCE_BOOKING_DAYS = int(os.getenv("ADVANCE_BOOKING_DAYS", "365"))
    CANCELLATION_HOURS = int(os.getenv("CANCELLATION_HOURS", "48"))

    # Admin listing page size
    ADMIN_PAGE_SIZE = 20

    # Razorpay
    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")

    # Email (Resend)
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    FROM_EMAIL = os.getenv("FROM_EMAIL", "bookings@bhimsonsagropark.com")

    # QR rendering
    QR_API_URL = os.getenv("QR_API_URL", "https://api.qrserver.com/v1/create-qr-code/")

    # Boot fails when integration secrets are missing
    STRICT_INTEGRATIONS = _env_bool("STRICT_INTEGRATIONS")

    # Celery
    CELERY = {
        "broker_url": os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        "result_backend": os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
        "task_ignore_result": True,
        "task_always_eager": _env_bool("CELERY_TASK_ALWAYS_EAGER"),
    }

    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RAZORPAY_KEY_ID = "rzp_test_key"
    RAZORPAY_KEY_SECRET = "rzp_test_secret"
    RESEND_API_KEY = "re_test_key"
    STRICT_INTEGRATIONS = False
    BCRYPT_ROUNDS = 4
    CELERY = {
        "broker_url": "memory://",
        "result_backend": "cache+memory://",
        "task_ignore_result": True,
        "task_always_eager": True,
        "task_eager_propagates": False,
    }


def _decimal(config, name: str) -> Decimal:
    raw = config.get(name)
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ConfigError(f"{name} must be a number, got {raw!r}")
    if not value.is_finite():
        raise ConfigError(f"{name} must be a finite number, got {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def _positive_int(config, name: str, allow_zero: bool = False) -> int:
    raw = config.get(name)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{name} must be positive")
    return value


@dataclass(frozen=True)
class ParkSettings:
    """Typed view over the Flask config, validated once in create_app."""

    app_name: str
    app_url: str
    currency: str
    tax_percentage: Decimal
    convenience_fee: Decimal
    child_price_percentage: Decimal
    max_guests_per_booking: int
    min_advance_hours: int
    advance_booking_days: int
    cancellation_hours: int
    admin_page_size: int
    razorpay_key_id: str | None
    razorpay_key_secret: str | None
    resend_api_key: str | None
    resend_api_url: str
    from_email: str
    qr_api_url: str

    @property
    def gateway_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def email_configured(self) -> bool:
        return bool(self.resend_api_key)

    @classmethod
    def from_mapping(cls, config) -> "ParkSettings":
        currency = (config.get("CURRENCY") or "").strip().upper()
        if len(currency) != 3:
            raise ConfigError("CURRENCY must be a 3-letter ISO code")

        child_pct = _decimal(config, "CHILD_PRICE_PERCENTAGE")
        if child_pct > 100:
            raise ConfigError("CHILD_PRICE_PERCENTAGE must be between 0 and 100")

        for name in ("APP_URL", "RESEND_API_URL", "QR_API_URL"):
            value = config.get(name) or ""
            if not value.startswith(("http://", "https://")):
                raise ConfigError(f"{name} must be an http(s) URL")

        settings = cls(
            app_name=config.get("APP_NAME") or "Park",
            app_url=config["APP_URL"].rstrip("/"),
            currency=currency,
            tax_percentage=_decimal(config, "TAX_PERCENTAGE"),
            convenience_fee=_decimal(config, "CONVENIENCE_FEE"),
            child_price_percentage=child_pct,
            max_guests_per_booking=_positive_int(config, "MAX_GUESTS_PER_BOOKING"),
            min_advance_hours=_positive_int(config, "MIN_ADVANCE_HOURS", allow_zero=True),
            advance_booking_days=_positive_int(config, "ADVANCE_BOOKING_DAYS"),
            cancellation_hours=_positive_int(config, "CANCELLATION_HOURS", allow_zero=True),
            admin_page_size=_positive_int(config, "ADMIN_PAGE_SIZE"),
            razorpay_key_id=config.get("RAZORPAY_KEY_ID") or None,
            razorpay_key_secret=config.get("RAZORPAY_KEY_SECRET") or None,
            resend_api_key=config.get("RESEND_API_KEY") or None,
            resend_api_url=config["RESEND_API_URL"],
            from_email=config.get("FROM_EMAIL") or "",
            qr_api_url=config["QR_API_URL"],
        )

        if config.get("STRICT_INTEGRATIONS"):
            if not settings.gateway_configured:
                raise ConfigError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required")
            if not settings.email_configured or not settings.from_email:
                raise ConfigError("RESEND_API_KEY and FROM_EMAIL are required")

        return settings
