import os
from pathlib import Path

from sqlalchemy.engine import URL


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() not in {"0", "false", "no"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    default_db_path = Path(__file__).resolve().parent.parent / "instance" / "cortex_exam.db"
    default_db_uri = URL.create(
        drivername="sqlite",
        database=str(default_db_path),
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", str(default_db_uri))
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SECONDS_PER_QUESTION = int(os.environ.get("SECONDS_PER_QUESTION", "90"))
    PASS_MARK = float(os.environ.get("PASS_MARK", "70"))
    SNAPSHOT_KEY = os.environ.get("SNAPSHOT_KEY", "cortexExamProgress")
    WARNING_THRESHOLDS = (120, 60, 30)
    TICKER_ENABLED = _env_flag("TICKER_ENABLED", "1")
    TICKER_INTERVAL = float(os.environ.get("TICKER_INTERVAL", "1"))
    DEFAULT_LANGUAGE = os.environ.get("DEFAULT_LANGUAGE", "PORTUGUESE")

    GENERATOR_ENABLED = _env_flag("GENERATOR_ENABLED", "1")
    GENERATOR_BASE_URL = os.environ.get("GENERATOR_BASE_URL", "http://localhost:18899")
    GENERATOR_TOKEN = os.environ.get("GENERATOR_TOKEN", "")
    GENERATOR_TIMEOUT = int(os.environ.get("GENERATOR_TIMEOUT", "120"))


class TestConfig(Config):
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    TESTING = True
    GENERATOR_ENABLED = False
    TICKER_ENABLED = False
