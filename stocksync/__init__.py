import uuid

from flask import Flask, g, request
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from config import Config

from . import extensions
from . import models  # ensure models are registered with SQLAlchemy
from .extensions import db
from .routes import api, errors, health
from .utils.sync_logging import configure_logging


def _ping_database() -> None:
    extensions.ping_database()


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    app.config.setdefault("DATABASE_AVAILABLE", True)
    app.config.setdefault("DATABASE_ERROR", None)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    db.init_app(app)
    configure_logging(app)

    database_available = True
    database_error_message: str | None = None

    with app.app_context():
        try:
            _ping_database()
        except OperationalError as exc:
            database_available = False
            details = str(getattr(exc, "orig", exc)).strip()
            database_error_message = (
                "Unable to connect to the configured database. Check the DB_URL "
                "setting; the API keeps retrying on every request."
            )
            if details:
                database_error_message += f" (Error: {details})"
            app.logger.error(
                "Database connection unavailable during startup%s",
                f": {details}" if details else "",
            )
            db.session.remove()
        else:
            try:
                db.create_all()
            except SQLAlchemyError:
                database_available = False
                database_error_message = "The database schema could not be initialized."
                app.logger.exception("Database initialization error")
                db.session.remove()

    app.config["DATABASE_AVAILABLE"] = database_available
    app.config["DATABASE_ERROR"] = database_error_message

    @app.before_request
    def _assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    @app.after_request
    def _echo_request_id(response):
        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id
        return response

    app.register_blueprint(health.bp)
    app.register_blueprint(api.bp)
    app.register_blueprint(errors.bp)

    return app
