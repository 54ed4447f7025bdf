"""Question bank access: today's questions, locally or from a remote provider."""
import json
import logging
from datetime import date
from typing import Callable, List, Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .clock import Clock
from .errors import ProviderUnavailable
from .models import DailyQuestion

logger = logging.getLogger(__name__)

NO_QUESTION_MESSAGE = "No question available for today."


class Question(BaseModel):
    """A single trivia question. Read-only once fetched."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    day: int
    category: str
    question: str
    answer: str
    alternate_answers: List[str] = Field(default_factory=list)


class DayQuestions(BaseModel):
    """Every question scheduled for one day, in play order."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    day: int
    scheduled_for: Optional[date] = Field(default=None, alias="date")
    questions: List[Question] = Field(min_length=1)


class QuestionProvider(Protocol):
    async def fetch_today(self) -> DayQuestions:
        ...


def question_from_row(row: DailyQuestion) -> Question:
    return Question(
        day=row.day,
        category=row.category,
        question=row.question,
        answer=row.answer,
        alternate_answers=json.loads(row.alternate_answers_json or "[]"),
    )


def load_day_questions(db: Session, today: date) -> Optional[DayQuestions]:
    """Questions scheduled for ``today`` ordered by slot, or None."""
    rows = (
        db.query(DailyQuestion)
        .filter(DailyQuestion.question_date == today.isoformat())
        .order_by(DailyQuestion.slot)
        .all()
    )
    if not rows:
        return None
    try:
        return DayQuestions(
            day=rows[0].day,
            scheduled_for=today,
            questions=[question_from_row(row) for row in rows],
        )
    except ValueError as exc:
        # Bad alternate_answers_json or a row failing validation
        logger.warning("Unreadable question bank row for %s: %s", today, exc)
        raise ProviderUnavailable("question bank has an unreadable question") from exc


class DatabaseQuestionProvider:
    """Reads today's questions straight from the local question bank."""

    def __init__(self, session_factory: Callable[[], Session], clock: Clock):
        self.session_factory = session_factory
        self.clock = clock

    async def fetch_today(self) -> DayQuestions:
        db = self.session_factory()
        try:
            bundle = load_day_questions(db, self.clock.today())
        except SQLAlchemyError as exc:
            raise ProviderUnavailable("question bank is unavailable") from exc
        finally:
            db.close()
        if bundle is None:
            raise ProviderUnavailable(NO_QUESTION_MESSAGE)
        return bundle


class HttpQuestionProvider:
    """Fetches today's questions from a remote deployment's provider endpoints."""

    def __init__(
        self,
        base_url: str,
        multi: bool = True,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.multi = multi
        self.timeout = timeout
        self._transport = transport

    async def fetch_today(self) -> DayQuestions:
        path = "/today-questions" if self.multi else "/today-question"
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(path)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Question fetch failed: %s", exc)
            raise ProviderUnavailable("could not reach the question provider") from exc

        if response.status_code != 200:
            try:
                message = response.json().get("error") or NO_QUESTION_MESSAGE
            except (ValueError, AttributeError):
                message = NO_QUESTION_MESSAGE
            raise ProviderUnavailable(message)

        try:
            payload = response.json()
            if self.multi:
                return DayQuestions.model_validate(payload)
            question = Question.model_validate(payload)
            return DayQuestions(day=question.day, scheduled_for=payload.get("date"), questions=[question])
        except (ValueError, ValidationError, AttributeError) as exc:
            raise ProviderUnavailable("question provider sent a malformed response") from exc
