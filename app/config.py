import os

class BaseConfig:
    JSON_SORT_KEYS = False
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "*")
    RATELIMIT_STORAGE_URL = os.getenv("RATELIMIT_STORAGE_URL", "memory://")
    ORDER_LIMIT_PER_IP = os.getenv("ORDER_LIMIT_PER_IP", "20 per hour")
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-insecure-jwt-key")
    ACCESS_TOKEN_LIFETIME_MIN = int(os.getenv("ACCESS_TOKEN_LIFETIME_MIN", 15))
    REFRESH_TOKEN_LIFETIME_DAYS = int(os.getenv("REFRESH_TOKEN_LIFETIME_DAYS", 30))

    # Checkout
    CHECKOUT_CURRENCY = os.getenv("CHECKOUT_CURRENCY", "INR")
    SHIPPING_FALLBACK_THRESHOLD = os.getenv("SHIPPING_FALLBACK_THRESHOLD", "299")
    SHIPPING_FALLBACK_FEE = os.getenv("SHIPPING_FALLBACK_FEE", "40")
    CHECKOUT_AMOUNT_TOLERANCE = os.getenv("CHECKOUT_AMOUNT_TOLERANCE", "0.00")
    BUY_NOW_STRATEGY = os.getenv("BUY_NOW_STRATEGY", "direct")  # direct | staged
    CART_RESTORE_POLICY = os.getenv("CART_RESTORE_POLICY", "overwrite")  # overwrite | preserve_concurrent
    CHECKOUT_ATTEMPT_TIMEOUT_SEC = int(os.getenv("CHECKOUT_ATTEMPT_TIMEOUT_SEC", 900))

    # Payment gateway
    PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "razorpay")  # razorpay | disabled
    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_API_BASE = os.getenv("RAZORPAY_API_BASE", "https://api.razorpay.com/v1")
    PAYMENT_GATEWAY_TIMEOUT_SEC = int(os.getenv("PAYMENT_GATEWAY_TIMEOUT_SEC", 10))

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-insecure-key")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///dev.db")

class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "test-key"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    RATELIMIT_ENABLED = False
    RAZORPAY_KEY_ID = "rzp_test_key"
    RAZORPAY_KEY_SECRET = "rzp_test_secret"

class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")

    @staticmethod
    def validate():
        missing = []
        if not os.getenv("SECRET_KEY"):
            missing.append("SECRET_KEY")
        if not os.getenv("DATABASE_URL"):
            missing.append("DATABASE_URL")
        if os.getenv("PAYMENT_GATEWAY", "razorpay") == "razorpay":
            for key in ("RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET"):
                if not os.getenv(key):
                    missing.append(key)
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
