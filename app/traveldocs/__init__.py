import logging
import uuid

from flask import Flask, g, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.traveldocs.cache import cache_from_config
from app.traveldocs.config import load_config
from app.traveldocs.db import create_schema, init_db, teardown_db_session
from app.traveldocs.envelope import Error, to_response
from app.traveldocs.errors import TravelerError
from app.traveldocs.routes import bp as routes_bp
from app.traveldocs.modules.travelers.api import bp as travelers_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)
    if app.config.get("AUTO_CREATE_SCHEMA"):
        create_schema(app)

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

    # Storage config check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    # One cache per process so its per-key locks are shared by every request thread.
    app.extensions["travelers_cache"] = cache_from_config(app.config)

    app.register_blueprint(routes_bp)
    app.register_blueprint(travelers_bp, url_prefix="/travelers")

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    @app.after_request
    def _echo_request_id(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(TravelerError)
    def _err_traveler(e: TravelerError):
        app.logger.info("%s (request_id=%s): %s", type(e).__name__, getattr(g, "request_id", None), e.message)
        return to_response(Error(e.message, e.status_code))

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):
        return to_response(Error(e.description or e.name, e.code or 500))

    @app.errorhandler(Exception)
    def _err_500(e):
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return to_response(Error("Internal server error", 500))

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
