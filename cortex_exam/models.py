from __future__ import annotations

from datetime import datetime

from . import db


class SnapshotSlot(db.Model):
    """Key-value slot holding the serialised in-progress session."""

    __tablename__ = "snapshot_slots"

    key = db.Column(db.String(120), primary_key=True)
    payload = db.Column(db.LargeBinary, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class ExamAttemptRecord(db.Model):
    __tablename__ = "exam_attempts"

    id = db.Column(db.Integer, primary_key=True)
    exam_code = db.Column(db.String(120), nullable=False, index=True)
    exam_name = db.Column(db.String(255))
    score = db.Column(db.Float, nullable=False)
    total_questions = db.Column(db.Integer, nullable=False)
    correct_answers = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(20), nullable=False, default="manual")
    taken_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    # Frozen copies used by history review; null for legacy rows.
    exam_data = db.Column(db.JSON)
    answers = db.Column(db.JSON)

    __table_args__ = (
        db.CheckConstraint("score >= 0 AND score <= 100", name="ck_exam_attempts_score_range"),
        db.CheckConstraint(
            "correct_answers >= 0 AND correct_answers <= total_questions",
            name="ck_exam_attempts_correct_range",
        ),
    )
