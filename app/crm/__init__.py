import logging

from flask import Flask, g, request
from dotenv import load_dotenv
from flask_cors import CORS

from app.crm.config import load_config
from app.crm.db import init_db, teardown_db_session
from app.crm.errors import register_error_handlers
from app.crm.routes import bp as routes_bp
from app.crm.auth import bp as auth_bp, load_current_identity
from app.crm.modules.customers.api import bp as customers_bp
from app.crm.modules.properties.api import bp as properties_bp


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("app").setLevel(level)


def create_app(config_overrides: dict | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if config_overrides:
        app.config.update(config_overrides)

    _configure_logging(app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if str(app.config.get("JWT_SECRET") or "") in ("", "change-me"):
            raise RuntimeError("JWT_SECRET must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    register_error_handlers(app)

    # Browser frontend calls the API cross-origin with credentials.
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True, expose_headers=["X-Request-ID"])

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(customers_bp, url_prefix="/api/customers")
    app.register_blueprint(properties_bp, url_prefix="/api/properties")

    app.before_request(load_current_identity)
    app.teardown_appcontext(teardown_db_session)

    @app.after_request
    def _tag_request_id(response):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    @app.before_request
    def _log_request():  # type: ignore[no-redef]
        app.logger.debug("%s %s (request_id=%s)", request.method, request.path, getattr(g, "request_id", None))

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
