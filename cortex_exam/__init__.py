from flask import Flask, current_app, jsonify
from flask_sqlalchemy import SQLAlchemy
from pathlib import Path
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

db = SQLAlchemy()

from .config import Config
from .db_maintenance import ensure_database_schema
from .i18n import ensure_language_code, get_language_choices, language_label

ENGINE_EXTENSION = "exam_engine"


def create_app(config_class: type[Config] | None = None, *, clock=None, ticker_factory=None) -> Flask:
    app = Flask(__name__)
    config = config_class or Config
    app.config.from_object(config)

    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if db_uri:
        try:
            url = make_url(db_uri)
        except ArgumentError:
            url = None
        if url and url.drivername == "sqlite" and url.database and url.database != ":memory:":
            db_path = Path(url.database)
            if not db_path.is_absolute():
                db_path = Path(app.root_path) / db_path
            db_path.parent.mkdir(parents=True, exist_ok=True)

    db.init_app(app)

    from .services.countdown import ThreadTicker
    from .services.exam_session import ExamSessionOrchestrator
    from .services.history import DatabaseHistoryStore
    from .services.persistence import DatabaseSnapshotStore, PersistenceGateway

    def warn(seconds_left: int) -> None:
        app.logger.warning("Exam time warning: %s seconds remaining", seconds_left)

    def app_ticker(callback):
        def run() -> None:
            with app.app_context():
                callback()

        return ThreadTicker(run, interval=app.config["TICKER_INTERVAL"])

    if ticker_factory is None and app.config["TICKER_ENABLED"]:
        ticker_factory = app_ticker

    app.extensions[ENGINE_EXTENSION] = ExamSessionOrchestrator(
        PersistenceGateway(DatabaseSnapshotStore(), key=app.config["SNAPSHOT_KEY"]),
        DatabaseHistoryStore(),
        clock=clock,
        on_warning=warn,
        seconds_per_question=app.config["SECONDS_PER_QUESTION"],
        warning_thresholds=app.config["WARNING_THRESHOLDS"],
        ticker_factory=ticker_factory,
        pass_mark=app.config["PASS_MARK"],
    )

    from .api import api_bp

    app.register_blueprint(api_bp)

    @app.get("/")
    def index():
        default_language = ensure_language_code(app.config.get("DEFAULT_LANGUAGE"))
        languages = [
            {**choice, "display": language_label(choice["code"])}
            for choice in get_language_choices()
        ]
        return jsonify(
            {
                "service": "cortex-exam",
                "defaultLanguage": default_language,
                "languages": languages,
            }
        )

    with app.app_context():
        ensure_database_schema(db.engine, app.logger)

    return app


def get_engine():
    """Return the exam engine owned by the current application."""

    return current_app.extensions[ENGINE_EXTENSION]
