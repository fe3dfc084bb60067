from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request

from .. import get_engine
from ..i18n import ensure_language_code, translate_text
from ..schemas import Question
from ..services.countdown import format_time, urgency
from ..services.exam_session import ExamDataError, NoActiveSessionError, SessionStatus, SessionView
from ..services.generation import ExamGenerationClient, ExamGenerationError, StudyMaterial
from ..services.history import Attempt, FinishReason, summarise_history
from ..services.navigator import QuestionFilter
from ..services.persistence import Absent, Restored
from ..services.review import build_flashcards, review_items
from . import api_bp

GENERATION_FAILED = (
    "Failed to generate the exam. The AI may be overloaded or the provided content "
    "may be invalid. Try again."
)


def _json_error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _language() -> str:
    requested = request.args.get("lang")
    if not requested:
        header = request.headers.get("Accept-Language", "")
        requested = header.split(",")[0].split(";")[0].strip() or None
    return ensure_language_code(requested or current_app.config.get("DEFAULT_LANGUAGE"))


def _t(text: str, **values: Any) -> str:
    return translate_text(text, _language(), **{k: str(v) for k, v in values.items()})


def _payload() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _parse_bool(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes"}:
        return True
    if lowered in {"0", "false", "no"}:
        return False
    return None


def _parse_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _serialise_question(question: Question) -> dict[str, Any]:
    # The answer key stays server-side while a session is running.
    return {
        "id": question.id,
        "type": question.type.value,
        "text": question.text,
        "scenario": question.scenario,
        "domain": question.domain,
        "multiSelect": question.type.is_multi,
        "options": [{"id": option.id, "text": option.text} for option in question.options],
    }


def _serialise_attempt(attempt: Attempt) -> dict[str, Any]:
    data = attempt.summary()
    data.update(
        {
            "id": attempt.attempt_id,
            "examName": attempt.exam_data.exam_name if attempt.exam_data else None,
            "reason": attempt.reason.value,
            "passed": attempt.passes(get_engine().pass_mark),
            "incorrectCount": attempt.incorrect_count,
        }
    )
    return data


def _serialise_result(attempt: Attempt) -> dict[str, Any]:
    data = _serialise_attempt(attempt)
    if attempt.reason is FinishReason.TIMEOUT:
        data["message"] = _t("Exam ended due to time.")
    else:
        data["message"] = _t("Exam submitted successfully.")
    return data


def _serialise_session(view: SessionView) -> dict[str, Any]:
    time_left = view.time_left_seconds
    return {
        "status": SessionStatus.ACTIVE.value,
        "examCode": view.exam_code,
        "examName": view.exam_name,
        "currentIndex": view.current_index,
        "currentNumber": view.current_index + 1,
        "totalQuestions": view.total_questions,
        "answeredCount": view.answered_count,
        "progress": view.progress_fraction,
        "timeLeftSeconds": time_left,
        "timeLeft": format_time(time_left),
        "urgency": urgency(time_left),
        "readingMode": view.reading_mode,
        "warnings": list(view.warnings),
        "domains": list(view.domains),
        "question": _serialise_question(view.question),
        "selected": list(view.selected),
        "flagged": view.flagged,
    }


def _session_response():
    """Session view, or the archived result once the session has ended."""

    engine = get_engine()
    view = engine.session_view()
    if view is not None:
        return jsonify(_serialise_session(view))
    attempt = engine.last_attempt
    if engine.status is SessionStatus.ENDED and attempt is not None:
        return jsonify({"status": SessionStatus.ENDED.value, "result": _serialise_result(attempt)})
    return _json_error(_t("No exam in progress."), 404)


def _intent_response(applied: bool):
    if applied:
        return _session_response()
    engine = get_engine()
    body: dict[str, Any] = {"applied": False}
    if engine.status is SessionStatus.ENDED and engine.last_attempt is not None:
        body["error"] = _t("Exam session already finished.")
        body["result"] = _serialise_result(engine.last_attempt)
    elif not engine.is_active:
        body["error"] = _t("No exam in progress.")
    return jsonify(body), 409


def _materials_from_payload(items: Any) -> list[StudyMaterial]:
    materials: list[StudyMaterial] = []
    for item in items or []:
        if not isinstance(item, dict) or not item.get("content"):
            continue
        materials.append(
            StudyMaterial(
                name=str(item.get("name") or "material"),
                mime_type=str(item.get("type") or "text/plain"),
                content=str(item["content"]),
            )
        )
    return materials


@api_bp.post("/exam/start")
def start_exam():
    payload = _payload()
    engine = get_engine()

    exam_data = payload.get("examData")
    if exam_data is None:
        exam_code = (payload.get("examCode") or "").strip()
        materials = _materials_from_payload(payload.get("materials"))
        if not exam_code or not materials:
            return _json_error(_t("Please provide an exam code and at least one study material."))
        question_count = _parse_int(payload.get("questionCount"))
        if question_count is None:
            return _json_error("questionCount must be an integer.")
        try:
            client = ExamGenerationClient.from_app()
            exam_data = client.generate(
                materials,
                exam_code,
                question_count,
                extra_topics=payload.get("extraTopics") or "",
                language=payload.get("language") or _language(),
            )
        except ExamGenerationError as exc:
            current_app.logger.warning("Exam generation failed for %s: %s", exam_code, exc)
            return jsonify({"error": _t(GENERATION_FAILED), "detail": str(exc)}), 502

    try:
        engine.start_session(exam_data)
    except ExamDataError as exc:
        return _json_error(str(exc))
    return _session_response(), 201


@api_bp.get("/exam/restore")
def restore_offer():
    offer = get_engine().restore_offer()
    if offer is None:
        return _json_error(_t("No saved exam to restore."), 404)
    return jsonify(
        {
            "message": _t(
                "An exam in progress was found. Do you want to continue where you left off?"
            ),
            "examCode": offer.exam_code,
            "examName": offer.exam_name,
            "timeLeftSeconds": offer.time_left_seconds,
            "timeLeft": format_time(offer.time_left_seconds),
            "answeredCount": offer.answered_count,
            "totalQuestions": offer.total_questions,
        }
    )


@api_bp.post("/exam/restore")
def confirm_restore():
    engine = get_engine()
    if engine.is_active:
        return _session_response()
    result = engine.resume()
    if isinstance(result, Restored):
        return _session_response()
    if isinstance(result, Absent):
        return _json_error(_t("No saved exam to restore."), 404)
    return jsonify({"error": _t("Could not restore the previous session."), "reason": result.reason}), 409


@api_bp.delete("/exam/restore")
def decline_restore():
    get_engine().decline_restore()
    return "", 204


@api_bp.get("/exam")
def session_view():
    engine = get_engine()
    engine.sync_clock()
    return _session_response()


@api_bp.get("/exam/questions")
def question_list():
    engine = get_engine()
    engine.sync_clock()
    criteria = QuestionFilter(
        domain=request.args.get("domain") or None,
        answered=_parse_bool(request.args.get("answered")),
        flagged=_parse_bool(request.args.get("flagged")),
        text=request.args.get("q") or None,
    )
    try:
        matches = engine.navigator(criteria)
        domains = engine.domains()
    except NoActiveSessionError:
        return _json_error(_t("No exam in progress."), 404)
    if not engine.is_active:
        return _json_error(_t("No exam in progress."), 404)

    entries = [
        {
            "number": entry.number,
            "index": entry.number - 1,
            "questionId": entry.question_id,
            "domain": entry.domain,
            "answered": entry.answered,
            "flagged": entry.flagged,
            "current": entry.current,
        }
        for entry in matches
    ]
    return jsonify({"items": entries, "total": len(entries), "domains": domains})


@api_bp.post("/exam/answer")
def answer_question():
    payload = _payload()
    question_id = payload.get("questionId")
    option_ids = payload.get("optionIds")
    if not isinstance(question_id, str) or not isinstance(option_ids, list):
        return _json_error("questionId and optionIds are required.")
    return _intent_response(get_engine().answer(question_id, [str(item) for item in option_ids]))


@api_bp.post("/exam/flag")
def flag_question():
    question_id = _payload().get("questionId")
    if not isinstance(question_id, str):
        return _json_error("questionId is required.")
    return _intent_response(get_engine().toggle_flag(question_id))


@api_bp.post("/exam/jump")
def jump_to_question():
    payload = _payload()
    engine = get_engine()
    if "number" in payload:
        number = _parse_int(payload.get("number"))
        if number is None:
            return _json_error("number must be an integer.")
        return _intent_response(engine.jump_to_number(number))
    step = payload.get("step")
    if step in {"next", "previous"}:
        moved = engine.next_question() if step == "next" else engine.previous_question()
        return _intent_response(moved)
    index = _parse_int(payload.get("index"))
    if index is None:
        return _json_error("Provide index, number or step.")
    return _intent_response(engine.jump(index))


@api_bp.post("/exam/reorder")
def reorder_questions():
    payload = _payload()
    from_index = _parse_int(payload.get("from"))
    to_index = _parse_int(payload.get("to"))
    if from_index is None or to_index is None:
        return _json_error("from and to must be integers.")
    return _intent_response(get_engine().reorder(from_index, to_index))


@api_bp.post("/exam/reading-mode")
def reading_mode():
    enabled = _payload().get("enabled")
    if not isinstance(enabled, bool):
        return _json_error("enabled must be a boolean.")
    return _intent_response(get_engine().set_reading_mode(enabled))


@api_bp.post("/exam/finish")
def finish_exam():
    engine = get_engine()
    attempt = engine.finish()
    if attempt is None:
        return _intent_response(False)
    return jsonify({"status": engine.status.value, "result": _serialise_result(attempt)})


@api_bp.delete("/exam")
def abandon_exam():
    if not get_engine().abandon():
        return _json_error(_t("No exam in progress."), 404)
    return "", 204


@api_bp.get("/history")
def history_list():
    attempts = list(get_engine().history.list())
    summary = summarise_history(attempts)
    return jsonify(
        {
            "items": [_serialise_attempt(attempt) for attempt in reversed(attempts)],
            "summary": {
                "totalAttempts": summary.total_attempts,
                "overallPercentage": summary.overall_percentage,
                "totalCorrect": summary.total_correct,
                "totalIncorrect": summary.total_incorrect,
                "examCodes": summary.exam_codes,
                "recentScores": summary.recent_scores,
            },
        }
    )


@api_bp.get("/history/<int:attempt_id>")
def history_detail(attempt_id: int):
    attempt = get_engine().history.get(attempt_id)
    if attempt is None:
        return _json_error(_t("Attempt not found."), 404)

    data = _serialise_attempt(attempt)
    incorrect = attempt.incorrect_questions()
    cards = build_flashcards(incorrect)
    data["review"] = [
        {
            "question": item.question.model_dump(mode="json", by_alias=True),
            "selected": list(item.selected),
            "correct": item.correct,
        }
        for item in review_items(incorrect, attempt.answers)
    ]
    data["flashcards"] = [{"question": card.question, "answer": card.answer} for card in cards]
    data["flashcardsMessage"] = _t("{count} flashcards generated.", count=len(cards))
    return jsonify(data)
