import logging
import os

from flask import Flask
from werkzeug.exceptions import HTTPException

from .config import DevelopmentConfig, ProductionConfig
from .extensions import db, migrate, jwt, ma, cors, limiter
from .utils.exceptions import ServiceError
from .utils.response_formatter import error_response, service_error_response


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=False)
    if config_object is None:
        env = os.getenv("FLASK_ENV", "development")
        config_object = ProductionConfig if env == "production" else DevelopmentConfig
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])
    logging.getLogger("clipverse").setLevel(app.config["LOG_LEVEL"])

    # models must be imported before migrate/create_all see the metadata
    from clipverse.models import (  # noqa: F401
        community,
        community_member,
        follow,
        phone_otp,
        user,
        wallet,
        wallet_history,
    )

    # initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",")]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )
    limiter.init_app(app)

    _register_jwt_handlers()

    # register blueprints
    from clipverse.routes.auth_routes import bp as auth_bp
    from clipverse.routes.user_routes import bp as user_bp
    from clipverse.routes.community_routes import bp as community_bp
    from clipverse.routes.wallet_routes import bp as wallet_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(community_bp)
    app.register_blueprint(wallet_bp)

    @app.errorhandler(ServiceError)
    def service_error(e):
        if e.status >= 500:
            app.logger.error(f"{e.code}: {e.message}")
        return service_error_response(e)

    @app.errorhandler(400)
    def bad_request(e):
        return error_response("BAD_REQUEST", e.description, status=400)

    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response("METHOD_NOT_ALLOWED", e.description, status=405)

    @app.errorhandler(413)
    def too_large(e):
        return error_response("FILE_TOO_LARGE", "Upload exceeds the size limit", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return error_response("RATE_LIMITED", "Too many requests", status=429)

    @app.errorhandler(500)
    def server_error(e):
        original = getattr(e, "original_exception", None)
        if original is not None and not isinstance(original, HTTPException):
            app.logger.error("Unhandled error", exc_info=original)
        return error_response("SERVER_ERROR", "Internal server error", status=500)

    return app


def _register_jwt_handlers():
    from clipverse.utils.auth_utils import lookup_token_user

    jwt.user_lookup_loader(lookup_token_user)

    @jwt.user_lookup_error_loader
    def user_missing(jwt_header, jwt_data):
        return error_response(
            "UNAUTHORIZED",
            "The user belonging to this token no longer exists.",
            status=401,
        )

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response(
            "UNAUTHORIZED",
            "You are not logged in. Please log in to get access.",
            status=401,
        )

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response("UNAUTHORIZED", "Invalid token. Please log in again.", status=401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_data):
        return error_response(
            "UNAUTHORIZED",
            "Your token has expired. Please log in again.",
            status=401,
        )
