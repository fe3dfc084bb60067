"""Database maintenance helpers to keep legacy deployments compatible."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from . import db

# Columns added to exam_attempts once attempts became reviewable.
ATTEMPT_REVIEW_COLUMNS: dict[str, str] = {
    "exam_name": "VARCHAR(255)",
    "reason": "VARCHAR(20) NOT NULL DEFAULT 'manual'",
    "exam_data": "JSON",
    "answers": "JSON",
}


def ensure_attempt_review_columns(engine: Engine, logger: logging.Logger | None = None) -> None:
    """Ensure ``exam_attempts`` carries the columns used by history review.

    Early deployments archived only the score, counts, exam code and time of
    each attempt. The review screens need the frozen question set and answers,
    so legacy tables are patched in place; existing rows keep null review data.
    """

    inspector = inspect(engine)
    tables: Iterable[str] = inspector.get_table_names()
    if "exam_attempts" not in tables:
        return

    columns = {col["name"] for col in inspector.get_columns("exam_attempts")}
    missing = [name for name in ATTEMPT_REVIEW_COLUMNS if name not in columns]
    if not missing:
        return

    logger = logger or logging.getLogger(__name__)
    logger.warning(
        "Missing exam_attempts columns detected (%s); applying legacy schema patch.",
        ", ".join(missing),
    )

    try:
        with engine.begin() as connection:
            for name in missing:
                connection.execute(
                    text(
                        f"ALTER TABLE exam_attempts ADD COLUMN {name} {ATTEMPT_REVIEW_COLUMNS[name]}"
                    )
                )
    except SQLAlchemyError:
        logger.exception("Failed to patch legacy exam_attempts table with review columns")
        raise


def ensure_core_tables(engine: Engine, logger: logging.Logger | None = None) -> None:
    """Ensure the base SQLAlchemy models are materialised for new databases."""

    from . import models  # noqa: F401

    logger = logger or logging.getLogger(__name__)
    try:
        db.create_all()
    except SQLAlchemyError:
        logger.exception("Failed to create core tables during maintenance")
        raise


def ensure_database_schema(engine: Engine, logger: logging.Logger | None = None) -> None:
    """Run all lightweight schema checks for legacy compatibility."""

    ensure_core_tables(engine, logger)
    ensure_attempt_review_columns(engine, logger)
