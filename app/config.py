import os
from decimal import Decimal


def _bool_env(name, default="0"):
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    JSON_SORT_KEYS = False
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "*")
    RATELIMIT_STORAGE_URL = os.getenv("RATELIMIT_STORAGE_URL", "memory://")
    CHECKOUT_LIMIT_PER_IP = os.getenv("CHECKOUT_LIMIT_PER_IP", "20 per hour")
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-insecure-jwt-key")
    ACCESS_TOKEN_LIFETIME_MIN = int(os.getenv("ACCESS_TOKEN_LIFETIME_MIN", 15))
    REFRESH_TOKEN_LIFETIME_DAYS = int(os.getenv("REFRESH_TOKEN_LIFETIME_DAYS", 30))
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Cart pricing
    TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.08"))
    FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "50.00"))
    FLAT_SHIPPING_FEE = Decimal(os.getenv("FLAT_SHIPPING_FEE", "5.99"))

    # Orders
    ORDER_STATUS_FORWARD_ONLY = _bool_env("ORDER_STATUS_FORWARD_ONLY")
    NOTIFY_ON_CHECKOUT = _bool_env("NOTIFY_ON_CHECKOUT", "1")
    CHANGE_FEED_KEEPALIVE_SECONDS = int(os.getenv("CHANGE_FEED_KEEPALIVE_SECONDS", 15))

    # Outbound e-mail
    EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "log")  # log or resend
    EMAIL_FROM = os.getenv("EMAIL_FROM", "Orders <onboarding@resend.dev>")
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    EMAIL_TIMEOUT_SECONDS = float(os.getenv("EMAIL_TIMEOUT_SECONDS", 10))

    OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "storefront-backend")
    OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318/v1/traces")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-insecure-key")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///dev.db")


class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "test-key"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    RATELIMIT_ENABLED = False
    NOTIFY_ON_CHECKOUT = False
    EMAIL_BACKEND = "log"
    CHANGE_FEED_KEEPALIVE_SECONDS = 1


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")
    SESSION_COOKIE_SECURE = True

    @staticmethod
    def validate():
        missing = []
        for name in ("SECRET_KEY", "DATABASE_URL", "JWT_SECRET"):
            if not os.getenv(name):
                missing.append(name)
        if os.getenv("EMAIL_BACKEND", "log") == "resend" and not os.getenv("RESEND_API_KEY"):
            missing.append("RESEND_API_KEY")
        if missing:
            raise RuntimeError(
                f"Missing required env vars in production: {', '.join(missing)}"
            )


def get_config_class():
    env = os.getenv("APP_ENV", "development").lower()
    if env == "production":
        ProductionConfig.validate()
        return ProductionConfig
    if env == "testing":
        return TestingConfig
    return DevelopmentConfig
