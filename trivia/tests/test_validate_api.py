"""Tests for the POST /validate answer-checking endpoint."""
import pytest
from fastapi.testclient import TestClient

from trivia.app.main import app, get_judge

from conftest import StubJudge


@pytest.fixture
def judge():
    return StubJudge(verdict_value=True)


@pytest.fixture
def client(judge):
    """Test client with a stubbed semantic judge."""
    app.dependency_overrides[get_judge] = lambda: judge
    yield TestClient(app)
    app.dependency_overrides.clear()


def body(user, correct, alternates=None, **extra):
    payload = {
        "userAnswer": user,
        "correctAnswer": correct,
        "alternateAnswers": alternates if alternates is not None else [],
    }
    payload.update(extra)
    return payload


@pytest.mark.parametrize(
    "user, correct, alternates, method",
    [
        ("Tom Brady", "tom brady", [], "exact"),
        ("TB12", "Tom Brady", ["tb12"], "exact"),
        ("the brady", "Brady", [], "normalized"),
        ("Brady", "Tom Brady", [], "keyword"),
        ("celery stalk, onions and carrots", "onion carrot celery stalks", [], "word-set"),
    ],
)
def test_deterministic_tiers(client, judge, user, correct, alternates, method):
    response = client.post("/validate", json=body(user, correct, alternates))
    assert response.status_code == 200
    assert response.json() == {"correct": True, "method": method}
    assert judge.calls == []


def test_escalates_to_judge_with_context(client, judge):
    response = client.post(
        "/validate",
        json=body("Gisele's husband", "Tom Brady", question="Who is the GOAT?", category="NFL"),
    )
    assert response.json() == {"correct": True, "method": "ai"}
    assert judge.calls == [("NFL", "Who is the GOAT?", "Tom Brady", "Gisele's husband")]


def test_judge_says_no(client, judge):
    judge.verdict_value = False
    response = client.post("/validate", json=body("Peyton Manning", "Tom Brady"))
    assert response.json() == {"correct": False, "method": "ai"}


def test_judge_outage_is_ai_error(client, judge):
    judge.verdict_value = None
    response = client.post("/validate", json=body("Peyton Manning", "Tom Brady"))
    assert response.status_code == 200
    assert response.json() == {"correct": False, "method": "ai-error"}


def test_snake_case_fields_accepted(client):
    response = client.post(
        "/validate",
        json={"user_answer": "Brady", "correct_answer": "Tom Brady", "alternate_answers": []},
    )
    assert response.json() == {"correct": True, "method": "keyword"}


def test_invalid_json(client):
    response = client.post(
        "/validate", content="{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON"}


@pytest.mark.parametrize(
    "payload",
    [
        {"correctAnswer": "Tom Brady", "alternateAnswers": []},
        {"userAnswer": "Brady", "alternateAnswers": []},
        {"userAnswer": "Brady", "correctAnswer": "Tom Brady"},
        {"userAnswer": "", "correctAnswer": "Tom Brady", "alternateAnswers": []},
        {"userAnswer": "   ", "correctAnswer": "Tom Brady", "alternateAnswers": []},
        {"userAnswer": "Brady", "correctAnswer": "Tom Brady", "alternateAnswers": "TB12"},
        ["Brady", "Tom Brady"],
    ],
)
def test_missing_required_fields(client, judge, payload):
    response = client.post("/validate", json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields"}
    assert judge.calls == []
