import logging
import os
from flask import Flask, jsonify
from .extensions import db, jwt, cors, migrate
from .config import config_by_name
from .errors import CheckoutError
from .utils.api import api_ok, api_error
from datetime import timedelta

logger = logging.getLogger(__name__)

def create_app(config_object=None, rate_limiter=None, gateway=None, **overrides):
    """Application factory.

    ``rate_limiter`` and ``gateway`` are injectable so deployments (and
    tests) can swap the process-local throttle or the Paymob client.
    """
    app = Flask(__name__, instance_relative_config=True)

    if config_object is None:
        config_object = config_by_name.get(os.getenv("FLASK_ENV", "development"), config_by_name["development"])
    app.config.from_object(config_object)
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(days=1)
    app.config.update(overrides)
    config_object.init_app(app)

    logging.getLogger("checkout").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    if not app.config.get("PAYMOB_HMAC_SECRET"):
        if app.config.get("PAYMOB_REQUIRE_HMAC"):
            raise RuntimeError("PAYMOB_HMAC_SECRET must be set when PAYMOB_REQUIRE_HMAC is enabled")
        logger.warning("PAYMOB_HMAC_SECRET is not set: payment webhooks will be accepted unsigned")

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)

    from .services.rate_limit import InMemoryRateLimiter
    from .services.paymob import PaymobClient
    app.extensions["rate_limiter"] = rate_limiter or InMemoryRateLimiter(
        max_hits=app.config["COUPON_RATE_LIMIT_MAX"],
        window_seconds=app.config["COUPON_RATE_LIMIT_WINDOW_SECONDS"],
    )
    app.extensions["payment_gateway"] = gateway or PaymobClient.from_config(app.config)

    # Register blueprints
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .payment import bp as payment_bp; app.register_blueprint(payment_bp)

    from .cli import register_cli
    register_cli(app)

    @app.errorhandler(CheckoutError)
    def handle_checkout_error(e):
        return jsonify(api_error(e.message, e.to_dict())), e.status_code

    @app.get("/")
    def health():
        return jsonify(api_ok("API running"))

    with app.app_context():
        from . import model  # noqa: F401
        db.create_all()

    return app
