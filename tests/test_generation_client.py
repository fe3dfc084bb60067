from __future__ import annotations

import pytest
import requests

from cortex_exam import create_app
from cortex_exam.config import TestConfig
from cortex_exam.services.generation import (
    ExamGenerationClient,
    ExamGenerationError,
    StudyMaterial,
)

from conftest import build_exam_payload


class _Response:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("no json")
        return self._payload


class _Session:
    """Stands in for ``requests.Session`` and records the last call."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


MATERIALS = [StudyMaterial(name="notes.txt", mime_type="text/plain", content="S3 is object storage")]


def _client(session, token="secret"):
    return ExamGenerationClient("http://generator.local/", token=token, timeout=5, session=session)


def test_generate_posts_materials_and_parses_exam():
    session = _Session(_Response(payload=build_exam_payload(count=5)))

    exam = _client(session).generate(MATERIALS, "CLF-C02", 5, extra_topics=" IAM ", language="en")

    url, kwargs = session.calls[0]
    assert url == "http://generator.local/api/generateExam"
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["timeout"] == 5
    body = kwargs["json"]
    assert body["examCode"] == "CLF-C02"
    assert body["questionCount"] == 5
    assert body["extraTopics"] == "IAM"
    assert body["language"] == "en-US"
    assert body["materials"] == [
        {"name": "notes.txt", "type": "text/plain", "content": "S3 is object storage"}
    ]
    assert len(exam.questions) == 5


def test_default_language_is_portuguese():
    session = _Session(_Response(payload=build_exam_payload(count=5)))

    _client(session, token=None).generate(MATERIALS, "CLF-C02", 5)

    _, kwargs = session.calls[0]
    assert kwargs["json"]["language"] == "pt-BR"
    assert "Authorization" not in kwargs["headers"]


@pytest.mark.parametrize("count", [4, 51])
def test_question_count_bounds(count):
    session = _Session(_Response(payload={}))

    with pytest.raises(ExamGenerationError):
        _client(session).generate(MATERIALS, "CLF-C02", count)
    assert session.calls == []


def test_requires_code_and_materials():
    session = _Session(_Response(payload={}))

    with pytest.raises(ExamGenerationError):
        _client(session).generate([], "CLF-C02", 10)
    with pytest.raises(ExamGenerationError):
        _client(session).generate(MATERIALS, "  ", 10)


@pytest.mark.parametrize(
    "response",
    [
        _Response(status_code=401),
        _Response(status_code=413),
        _Response(status_code=503),
        _Response(status_code=422),
        _Response(invalid_json=True),
        _Response(payload={"examCode": "CLF-C02", "questions": []}),
    ],
)
def test_bad_responses_raise_generation_error(response):
    with pytest.raises(ExamGenerationError):
        _client(_Session(response)).generate(MATERIALS, "CLF-C02", 10)


def test_network_failure_raises_generation_error():
    session = _Session(error=requests.ConnectionError("refused"))

    with pytest.raises(ExamGenerationError):
        _client(session).generate(MATERIALS, "CLF-C02", 10)


def test_from_app_respects_disabled_flag():
    app = create_app(TestConfig)

    with pytest.raises(ExamGenerationError):
        ExamGenerationClient.from_app(app)


def test_from_app_reads_configuration():
    class GeneratorConfig(TestConfig):
        GENERATOR_ENABLED = True
        GENERATOR_BASE_URL = "http://gen.example"
        GENERATOR_TOKEN = "abc"
        GENERATOR_TIMEOUT = 30

    client = ExamGenerationClient.from_app(create_app(GeneratorConfig))

    assert client.base_url == "http://gen.example"
    assert client.token == "abc"
    assert client.timeout == 30
