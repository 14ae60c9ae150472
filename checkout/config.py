import os


def _env_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y")


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # store I/O is bounded; a timeout surfaces as a retryable 503
    DB_POOL_TIMEOUT_SECONDS = int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "10"))

    # Paymob
    PAYMOB_BASE_URL = os.getenv("PAYMOB_BASE_URL", "https://accept.paymob.com/api")
    PAYMOB_API_KEY = os.getenv("PAYMOB_API_KEY")
    PAYMOB_INTEGRATION_ID = os.getenv("PAYMOB_INTEGRATION_ID")
    PAYMOB_IFRAME_ID = os.getenv("PAYMOB_IFRAME_ID")
    PAYMOB_CURRENCY = os.getenv("PAYMOB_CURRENCY", "EGP")
    PAYMOB_HMAC_SECRET = os.getenv("PAYMOB_HMAC_SECRET")
    PAYMOB_REQUIRE_HMAC = _env_bool("PAYMOB_REQUIRE_HMAC", False)
    GATEWAY_TIMEOUT_SECONDS = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

    # process-local throttle for /cart/apply-coupon
    COUPON_RATE_LIMIT_MAX = int(os.getenv("COUPON_RATE_LIMIT_MAX", "10"))
    COUPON_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("COUPON_RATE_LIMIT_WINDOW_SECONDS", "60"))

    APP_BASE_URL = os.getenv("APP_BASE_URL") or os.getenv("PUBLIC_APP_URL")

    @staticmethod
    def init_app(app):

        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config.setdefault(
                "SQLALCHEMY_DATABASE_URI",
                f"sqlite:///{os.path.join(app.instance_path, 'app.db')}",
            )
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")

        uri = app.config["SQLALCHEMY_DATABASE_URI"]
        if not uri.startswith("sqlite"):
            app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
                "pool_timeout": app.config["DB_POOL_TIMEOUT_SECONDS"],
                "pool_pre_ping": True,
            })


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    # unsigned webhooks are refused at start-up unless explicitly disabled
    PAYMOB_REQUIRE_HMAC = _env_bool("PAYMOB_REQUIRE_HMAC", True)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-for-the-checkout-suite"
    PAYMOB_API_KEY = None
    PAYMOB_HMAC_SECRET = None
    PAYMOB_REQUIRE_HMAC = False
    COUPON_RATE_LIMIT_MAX = 10
    COUPON_RATE_LIMIT_WINDOW_SECONDS = 60
    APP_BASE_URL = None

    @staticmethod
    def init_app(app):
        pass


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
