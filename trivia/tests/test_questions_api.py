"""Tests for the question bank: admin seeding, provider endpoints and the HTTP provider."""
from datetime import date
from unittest import mock

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from trivia.app.clock import FixedClock
from trivia.app.db import Base, get_db
from trivia.app.errors import ProviderUnavailable
from trivia.app.main import app, get_clock, get_provider
from trivia.app.models import DailyQuestion
from trivia.app.questions import DatabaseQuestionProvider, HttpQuestionProvider

TODAY = date(2026, 3, 10)
ADMIN = {"X-ADMIN-KEY": "test-admin-key"}


@pytest.fixture(scope="function")
def test_db():
    """Create a fresh in-memory test database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: FixedClock(TODAY)
    yield TestingSessionLocal
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def client(test_db):
    """Test client with test database and the admin key configured."""
    with mock.patch("trivia.app.main.ADMIN_KEY", "test-admin-key"):
        yield TestClient(app)


def question_payload(slot, answer, question_date="2026-03-10", day=42, **extra):
    payload = {
        "questionDate": question_date,
        "day": day,
        "slot": slot,
        "category": f"Category {slot}",
        "question": f"Question {slot}?",
        "answer": answer,
    }
    payload.update(extra)
    return payload


class TestSeedQuestions:
    def test_requires_admin_key(self, client):
        body = {"questions": [question_payload(0, "Paris")]}
        response = client.post("/admin/seed_questions", json=body, headers={"X-ADMIN-KEY": "wrong"})
        assert response.status_code == 403

    def test_missing_admin_key_header(self, client):
        body = {"questions": [question_payload(0, "Paris")]}
        response = client.post("/admin/seed_questions", json=body)
        assert response.status_code == 422

    def test_rejected_when_admin_key_unset(self, test_db):
        with mock.patch("trivia.app.main.ADMIN_KEY", ""):
            response = TestClient(app).post(
                "/admin/seed_questions",
                json={"questions": [question_payload(0, "Paris")]},
                headers={"X-ADMIN-KEY": ""},
            )
        assert response.status_code == 403

    def test_creates_then_updates_in_place(self, client, test_db):
        body = {
            "questions": [
                question_payload(0, "Tom Brady", alternateAnswers=["TB12"]),
                question_payload(1, "Paris"),
            ]
        }
        response = client.post("/admin/seed_questions", json=body, headers=ADMIN)
        assert response.status_code == 200
        assert response.json() == {"created": 2, "updated": 0}

        fix = {"questions": [question_payload(1, "Paris, France")]}
        response = client.post("/admin/seed_questions", json=fix, headers=ADMIN)
        assert response.json() == {"created": 0, "updated": 1}

        db = test_db()
        try:
            rows = db.query(DailyQuestion).order_by(DailyQuestion.slot).all()
            assert [r.answer for r in rows] == ["Tom Brady", "Paris, France"]
            assert rows[0].alternate_answers_json == '["TB12"]'
        finally:
            db.close()

    def test_rejects_invalid_day(self, client):
        body = {"questions": [question_payload(0, "Paris", day=0)]}
        response = client.post("/admin/seed_questions", json=body, headers=ADMIN)
        assert response.status_code == 422


class TestProviderEndpoints:
    def test_no_questions_today(self, client):
        for path in ("/today-question", "/today-questions"):
            response = client.get(path)
            assert response.status_code == 404
            assert response.json() == {"error": "No question available for today."}

    def test_today_questions_in_slot_order(self, client):
        body = {
            "questions": [
                question_payload(2, "Jupiter"),
                question_payload(0, "Tom Brady", alternateAnswers=["TB12"]),
                question_payload(1, "Paris"),
                question_payload(0, "Yesterday", question_date="2026-03-09", day=41),
            ]
        }
        client.post("/admin/seed_questions", json=body, headers=ADMIN)

        data = client.get("/today-questions").json()
        assert data["day"] == 42
        assert data["date"] == "2026-03-10"
        assert [q["answer"] for q in data["questions"]] == ["Tom Brady", "Paris", "Jupiter"]
        assert data["questions"][0]["alternateAnswers"] == ["TB12"]

    def test_today_question_is_first_slot(self, client):
        body = {"questions": [question_payload(1, "Paris"), question_payload(0, "Tom Brady")]}
        client.post("/admin/seed_questions", json=body, headers=ADMIN)

        data = client.get("/today-question").json()
        assert data == {
            "day": 42,
            "category": "Category 0",
            "question": "Question 0?",
            "answer": "Tom Brady",
            "alternateAnswers": [],
            "date": "2026-03-10",
        }

    def test_unreadable_row_is_404(self, client, test_db):
        db = test_db()
        db.add(DailyQuestion(
            question_date="2026-03-10", day=42, slot=0, category="NFL",
            question="GOAT?", answer="Tom Brady", alternate_answers_json='["TB12"',
        ))
        db.commit()
        db.close()

        for path in ("/today-question", "/today-questions"):
            response = client.get(path)
            assert response.status_code == 404
            assert response.json() == {"error": "question bank has an unreadable question"}


@pytest.mark.asyncio
class TestDatabaseQuestionProvider:
    async def test_fetches_today(self, test_db):
        db = test_db()
        db.add(DailyQuestion(
            question_date="2026-03-10", day=42, slot=0, category="Geography",
            question="Capital of France?", answer="Paris", alternate_answers_json="[]",
        ))
        db.commit()
        db.close()

        bundle = await DatabaseQuestionProvider(test_db, FixedClock(TODAY)).fetch_today()
        assert bundle.day == 42
        assert bundle.questions[0].answer == "Paris"

    async def test_empty_bank_is_unavailable(self, test_db):
        provider = DatabaseQuestionProvider(test_db, FixedClock(TODAY))
        with pytest.raises(ProviderUnavailable, match="No question available"):
            await provider.fetch_today()

    @pytest.mark.parametrize("alternates", ["{broken", '{"TB12": 1}'])
    async def test_unreadable_row_is_unavailable(self, test_db, alternates):
        db = test_db()
        db.add(DailyQuestion(
            question_date="2026-03-10", day=42, slot=0, category="NFL",
            question="GOAT?", answer="Tom Brady", alternate_answers_json=alternates,
        ))
        db.commit()
        db.close()

        provider = DatabaseQuestionProvider(test_db, FixedClock(TODAY))
        with pytest.raises(ProviderUnavailable, match="unreadable"):
            await provider.fetch_today()


def remote(handler, multi=True):
    return HttpQuestionProvider("https://trivia.test/", multi=multi, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestHttpQuestionProvider:
    async def test_multi_question_day(self):
        def handler(request):
            assert request.url.path == "/today-questions"
            return httpx.Response(200, json={
                "day": 42,
                "date": "2026-03-10",
                "questions": [
                    {"day": 42, "category": "NFL", "question": "Q?", "answer": "Tom Brady",
                     "alternateAnswers": ["TB12"]},
                    {"day": 42, "category": "Geo", "question": "Q?", "answer": "Paris"},
                ],
            })

        bundle = await remote(handler).fetch_today()
        assert bundle.day == 42
        assert bundle.scheduled_for == TODAY
        assert bundle.questions[0].alternate_answers == ["TB12"]
        assert bundle.questions[1].alternate_answers == []

    async def test_single_question_day(self):
        def handler(request):
            assert request.url.path == "/today-question"
            return httpx.Response(200, json={
                "day": 41, "date": "2026-03-09", "category": "NFL",
                "question": "Q?", "answer": "Tom Brady", "alternateAnswers": [],
            })

        bundle = await remote(handler, multi=False).fetch_today()
        assert bundle.day == 41
        assert len(bundle.questions) == 1

    async def test_error_body_is_surfaced(self):
        provider = remote(lambda r: httpx.Response(404, json={"error": "Come back tomorrow"}))
        with pytest.raises(ProviderUnavailable, match="Come back tomorrow"):
            await provider.fetch_today()

    async def test_non_json_error_uses_default_message(self):
        provider = remote(lambda r: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(ProviderUnavailable, match="No question available"):
            await provider.fetch_today()

    async def test_empty_day_is_malformed(self):
        provider = remote(lambda r: httpx.Response(200, json={"day": 42, "questions": []}))
        with pytest.raises(ProviderUnavailable, match="malformed"):
            await provider.fetch_today()

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(ProviderUnavailable, match="could not reach"):
            await remote(handler).fetch_today()


class TestProviderSelection:
    def test_local_bank_by_default(self, test_db):
        with mock.patch("trivia.app.main.QUESTION_PROVIDER_URL", ""):
            provider = get_provider(test_db, FixedClock(TODAY))
        assert isinstance(provider, DatabaseQuestionProvider)

    def test_remote_deployment_when_configured(self, test_db):
        with mock.patch("trivia.app.main.QUESTION_PROVIDER_URL", "https://trivia.test/"), \
             mock.patch("trivia.app.main.QUESTION_PROVIDER_MULTI", False):
            provider = get_provider(test_db, FixedClock(TODAY))
        assert isinstance(provider, HttpQuestionProvider)
        assert provider.base_url == "https://trivia.test"
        assert provider.multi is False
