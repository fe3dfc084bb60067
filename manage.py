from __future__ import annotations

import json
from pathlib import Path

import click

from cortex_exam import create_app, db, get_engine
from cortex_exam.schemas import ExamData
from cortex_exam.services.countdown import format_time
from cortex_exam.services.exam_session import ExamDataError
from cortex_exam.services.history import summarise_history

app = create_app()

DEMO_DOMAINS = ("Cloud Concepts", "Security and Compliance", "Billing and Pricing")


def _demo_exam() -> ExamData:
    questions = []
    for number in range(1, 11):
        domain = DEMO_DOMAINS[number % len(DEMO_DOMAINS)]
        multi = number % 4 == 0
        questions.append(
            {
                "id": f"q{number}",
                "type": "Multiple Choice" if multi else "Single Choice",
                "text": f"Demo question {number}: which statement about {domain.lower()} is true?",
                "scenario": "A startup is moving its workloads to the cloud." if number % 5 == 0 else None,
                "options": [
                    {"id": "a", "text": "Statement A"},
                    {"id": "b", "text": "Statement B"},
                    {"id": "c", "text": "Statement C"},
                    {"id": "d", "text": "Statement D"},
                ],
                "correctAnswers": ["a", "c"] if multi else ["b"],
                "domain": domain,
                "explanation": f"Explanation for demo question {number}.",
            }
        )
    return ExamData.model_validate(
        {"examCode": "DEMO-01", "examName": "Cloud Practitioner Demo", "questions": questions}
    )


@app.cli.command("init-db")
def init_db() -> None:
    """Initialise the database schema."""
    db.create_all()
    app.logger.info("Database tables created")


@app.cli.command("seed-demo")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the demo question set (defaults to the instance folder).",
)
def seed_demo(output: Path | None) -> None:
    """Write a demo question set that can be started with start-exam."""
    target = output or Path(app.instance_path) / "demo_exam.json"
    target.parent.mkdir(parents=True, exist_ok=True)
    exam = _demo_exam()
    target.write_text(json.dumps(exam.to_payload(), indent=2, ensure_ascii=False), encoding="utf-8")
    app.logger.info("Demo question set written to %s", target)
    click.echo(str(target))


@app.cli.command("start-exam")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def start_exam(path: Path) -> None:
    """Start a session from a question set file, replacing any saved one."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc}") from exc
    try:
        state = get_engine().start_session(payload)
    except ExamDataError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(
        f"Started {state.exam_code}: {state.total_questions} questions, "
        f"{format_time(state.time_left_seconds)} on the clock"
    )


@app.cli.command("history")
def history() -> None:
    """Print archived attempts, oldest first."""
    attempts = list(get_engine().history.list())
    if not attempts:
        click.echo("No attempts recorded yet.")
        return
    for attempt in attempts:
        status = "PASS" if attempt.passes(app.config["PASS_MARK"]) else "FAIL"
        click.echo(
            f"#{attempt.attempt_id} {attempt.timestamp:%Y-%m-%d %H:%M} {attempt.exam_code} "
            f"{attempt.correct_answers}/{attempt.total_questions} "
            f"{attempt.score:.1f}% {status} ({attempt.reason.value})"
        )
    summary = summarise_history(attempts)
    click.echo(
        f"{summary.total_attempts} attempts, {summary.overall_percentage:.1f}% overall, "
        f"{summary.total_incorrect} incorrect answers"
    )
