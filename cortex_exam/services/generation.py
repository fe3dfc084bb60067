"""Client for the external question generation service.

The service wraps an LLM that reads the user's study materials and returns a
question set. The engine only needs a well-formed ``ExamData`` back; any
transport, status or payload problem is reported as ``ExamGenerationError``
and no session is started from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

import requests
from flask import current_app
from pydantic import ValidationError

from ..i18n import generation_locale
from ..schemas import ExamData

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 5
MAX_QUESTIONS = 50
DEFAULT_TIMEOUT = 120


class ExamGenerationError(RuntimeError):
    """Raised when the generation service cannot produce a usable question set."""


@dataclass(frozen=True)
class StudyMaterial:
    name: str
    mime_type: str
    content: str  # base64 encoded by the uploader


def _material_payload(materials: Sequence[StudyMaterial]) -> list[dict[str, str]]:
    return [
        {"name": item.name, "type": item.mime_type, "content": item.content}
        for item in materials
    ]


class ExamGenerationClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http = session or requests.Session()

    @classmethod
    def from_app(cls, app=None) -> "ExamGenerationClient":
        app = app or current_app._get_current_object()
        if not app.config.get("GENERATOR_ENABLED", True):
            raise ExamGenerationError("Question generation is disabled.")
        base_url = (app.config.get("GENERATOR_BASE_URL") or "").strip()
        if not base_url:
            raise ExamGenerationError("No generation service is configured.")
        token = (app.config.get("GENERATOR_TOKEN") or "").strip() or None
        try:
            timeout = int(app.config.get("GENERATOR_TIMEOUT", DEFAULT_TIMEOUT))
        except (TypeError, ValueError):
            timeout = DEFAULT_TIMEOUT
        return cls(base_url, token=token, timeout=timeout)

    def generate(
        self,
        materials: Iterable[StudyMaterial],
        exam_code: str,
        question_count: int,
        extra_topics: str = "",
        language: str | None = None,
    ) -> ExamData:
        materials = list(materials)
        exam_code = (exam_code or "").strip()
        if not exam_code or not materials:
            raise ExamGenerationError(
                "An exam code and at least one study material are required."
            )
        if not MIN_QUESTIONS <= question_count <= MAX_QUESTIONS:
            raise ExamGenerationError(
                f"Question count must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}."
            )

        payload = {
            "examCode": exam_code,
            "questionCount": question_count,
            "extraTopics": (extra_topics or "").strip(),
            "language": generation_locale(language),
            "materials": _material_payload(materials),
        }
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = f"{self.base_url}/api/generateExam"

        try:
            response = self.http.post(url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ExamGenerationError("Failed to reach the generation service.") from exc

        if response.status_code == 401:
            raise ExamGenerationError("Generation service rejected the authentication token.")
        if response.status_code == 413:
            raise ExamGenerationError("A study material exceeds the supported size limit.")
        if response.status_code >= 500:
            raise ExamGenerationError("Generation service encountered an internal error.")
        if response.status_code >= 400:
            raise ExamGenerationError(
                f"Generation service returned status {response.status_code}."
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ExamGenerationError("Generation service responded with invalid JSON.") from exc

        try:
            exam = ExamData.model_validate(data)
        except ValidationError as exc:
            raise ExamGenerationError(
                "Generation service returned an unusable question set."
            ) from exc

        if exam.exam_code != exam_code:
            logger.debug("Generator renamed exam %s to %s", exam_code, exam.exam_code)
        logger.info("Generated %s questions for %s", len(exam.questions), exam.exam_code)
        return exam


__all__ = [
    "ExamGenerationClient",
    "ExamGenerationError",
    "MAX_QUESTIONS",
    "MIN_QUESTIONS",
    "StudyMaterial",
]
