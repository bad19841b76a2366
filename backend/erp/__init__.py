# backend/erp/__init__.py
from flask import Flask, redirect, request
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config, Settings, get_settings
from .error_codes import ApiError
from .extensions import db, jwt, migrate


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def _register_jwt_loaders() -> None:
    """Render flask-jwt-extended failures in the same envelope as ApiError."""

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        err = ApiError("ERR_AUTH_002")
        return err.to_dict(), err.status

    @jwt.invalid_token_loader
    def invalid_token(reason):
        err = ApiError("ERR_AUTH_003")
        return err.to_dict(), err.status

    @jwt.unauthorized_loader
    def missing_token(reason):
        err = ApiError("ERR_AUTH_004")
        return err.to_dict(), err.status


def create_app(settings: Settings | None = None, config_overrides: dict | None = None) -> Flask:
    """
    Application factory.

    settings defaults to the process environment (get_settings()). Tests pass
    a Settings instance and/or config_overrides, which are applied before any
    extension reads the config.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config(settings or get_settings()))
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Only trusted proxies may rewrite remote_addr/scheme; rate limits key on remote_addr
    hops = app.config.get("TRUST_PROXY_HOPS", 0)
    if hops:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    _register_jwt_loaders()

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services import csrf_service, rate_limit_service

    @app.before_request
    def redirect_to_https():
        if app.config["FORCE_HTTPS"] and request.scheme == "http":
            return redirect(request.url.replace("http://", "https://", 1), code=301)

    app.before_request(rate_limit_service.check_request)
    app.before_request(csrf_service.protect)
    app.after_request(rate_limit_service.record_response)

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.businesses import businesses_bp
    from .routes.customers import customers_bp
    from .routes.products import products_bp
    from .routes.sales import sales_bp
    from .routes.purchases import purchases_bp
    from .routes.payments import payments_bp
    from .routes.dashboard import dashboard_bp
    from .routes.transaction_ledger import ledger_bp
    from .routes.excel import excel_bp
    from .routes.settings import settings_bp
    from .routes.users import users_bp
    from .routes.notifications import notifications_bp
    from .routes.activity_logs import activity_logs_bp
    from .routes.otp import otp_bp
    from .routes.chatbot import chatbot_bp
    from .routes.notes import notes_bp
    from .routes.accounts import accounts_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(businesses_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(excel_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(activity_logs_bp)
    app.register_blueprint(otp_bp)
    app.register_blueprint(chatbot_bp)
    app.register_blueprint(notes_bp)
    app.register_blueprint(accounts_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = (request.headers.get("Origin") or "").rstrip("/")
        if origin and origin in app.config["ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, X-CSRF-Token, CSRF-Token"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    @app.after_request
    def add_security_headers(response):
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if app.config["APP_ENV"] == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
