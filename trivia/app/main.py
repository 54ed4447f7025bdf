"""FastAPI application for the daily trivia game."""
import json
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from .clock import Clock
from .db import ensure_schema, get_db, get_session_factory
from .errors import (
    InvalidTransition,
    ProviderUnavailable,
    TriviaError,
    ValidationInputError,
)
from .judge import AnthropicJudge, Judge
from .matcher import Matcher, build_matcher
from .models import DailyQuestion
from .progression import ProgressionStore
from .questions import (
    NO_QUESTION_MESSAGE,
    DatabaseQuestionProvider,
    HttpQuestionProvider,
    QuestionProvider,
    load_day_questions,
)
from .schemas import (
    AnswerRequest,
    MatchResultResponse,
    SeedQuestionsRequest,
    SeedQuestionsResponse,
    SessionView,
    ShareResponse,
    ValidateRequest,
    WagerRequest,
)
from .session import Phase, SessionController, SessionRegistry
from .settings import (
    ADMIN_KEY,
    LOG_LEVEL,
    MATCH_TIERS,
    QUESTION_PROVIDER_MULTI,
    QUESTION_PROVIDER_TIMEOUT_SECONDS,
    QUESTION_PROVIDER_URL,
)
from .share import share_text
from .storage import SqlAlchemyBackend

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_schema()
    yield


app = FastAPI(title="Daily Trivia API", version="0.1.0", lifespan=lifespan)

# CORS configuration
_allowed_origins_env = os.getenv("ALLOWED_ORIGINS")
if _allowed_origins_env:
    allowed_origins = [origin.strip() for origin in _allowed_origins_env.split(",")]
else:
    allowed_origins = ["http://localhost:3000"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_registry = SessionRegistry()


# Dependencies

def get_clock() -> Clock:
    return Clock()


def get_judge() -> Judge:
    return AnthropicJudge()


def get_matcher(judge: Judge = Depends(get_judge)) -> Matcher:
    return build_matcher(MATCH_TIERS, judge)


def get_registry() -> SessionRegistry:
    return _registry


def get_store(
    session_factory=Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> ProgressionStore:
    return ProgressionStore(SqlAlchemyBackend(session_factory), clock)


def get_provider(
    session_factory=Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> QuestionProvider:
    if QUESTION_PROVIDER_URL:
        return HttpQuestionProvider(
            QUESTION_PROVIDER_URL,
            multi=QUESTION_PROVIDER_MULTI,
            timeout=QUESTION_PROVIDER_TIMEOUT_SECONDS,
        )
    return DatabaseQuestionProvider(session_factory, clock)


# Error translation

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(ValidationInputError)
async def validation_input_error_handler(request: Request, exc: ValidationInputError):
    return _error(400, str(exc))


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return _error(409, str(exc))


@app.exception_handler(ProviderUnavailable)
async def provider_unavailable_handler(request: Request, exc: ProviderUnavailable):
    return _error(404, str(exc))


@app.exception_handler(TriviaError)
async def trivia_error_handler(request: Request, exc: TriviaError):
    logger.warning("Unhandled trivia error on %s: %s", request.url.path, exc)
    return _error(500, str(exc))


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# Question provider

@app.get("/today-question")
def get_today_question(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """The first question scheduled for today (single-question days)."""
    bundle = load_day_questions(db, clock.today())
    if bundle is None:
        raise ProviderUnavailable(NO_QUESTION_MESSAGE)
    payload = bundle.questions[0].model_dump(mode="json", by_alias=True)
    payload["date"] = clock.today().isoformat()
    return payload


@app.get("/today-questions")
def get_today_questions(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """Every question scheduled for today, in play order."""
    bundle = load_day_questions(db, clock.today())
    if bundle is None:
        raise ProviderUnavailable(NO_QUESTION_MESSAGE)
    return bundle.model_dump(mode="json", by_alias=True)


# Answer validation

@app.post("/validate", response_model=MatchResultResponse)
async def validate_answer(request: Request, matcher: Matcher = Depends(get_matcher)):
    """Judge a free-text answer against the canonical answer and alternates."""
    try:
        body = await request.json()
    except ValueError:
        raise ValidationInputError("Invalid JSON")

    try:
        req = ValidateRequest.model_validate(body)
    except ValidationError:
        raise ValidationInputError("Missing required fields")
    if not req.user_answer.strip():
        raise ValidationInputError("Missing required fields")

    result = await matcher.match(
        req.user_answer,
        req.correct_answer,
        req.alternate_answers,
        req.question,
        req.category,
    )
    return result.as_dict()


# Player progression and daily play

@app.get("/players/{player_id}/record")
def get_player_record(player_id: str, store: ProgressionStore = Depends(get_store)):
    """The player's record after migration and streak decay."""
    return store.load(player_id).to_payload()


def _current_controller(player_id: str, registry: SessionRegistry, clock: Clock) -> SessionController:
    controller = registry.get(player_id, clock.today())
    if controller is None:
        raise HTTPException(status_code=404, detail="No session started today for player")
    return controller


@app.post("/players/{player_id}/day", response_model=SessionView)
async def start_day(
    player_id: str,
    clock: Clock = Depends(get_clock),
    registry: SessionRegistry = Depends(get_registry),
    store: ProgressionStore = Depends(get_store),
    provider: QuestionProvider = Depends(get_provider),
    matcher: Matcher = Depends(get_matcher),
):
    """Start today's session, resume it, or retry a failed question fetch."""
    today = clock.today()
    controller = registry.get(player_id, today)
    if controller is None:
        controller = SessionController(player_id, store, provider, matcher, clock)
        registry.put(controller, today)
        await controller.start()
    elif controller.phase is Phase.ERROR:
        await controller.retry()
    return controller.view()


@app.get("/players/{player_id}/day", response_model=SessionView)
async def get_day(
    player_id: str,
    clock: Clock = Depends(get_clock),
    registry: SessionRegistry = Depends(get_registry),
):
    return _current_controller(player_id, registry, clock).view()


@app.post("/players/{player_id}/day/wager", response_model=SessionView)
async def place_wager(
    player_id: str,
    body: WagerRequest,
    clock: Clock = Depends(get_clock),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = _current_controller(player_id, registry, clock)
    controller.place_wager(body.wager)
    return controller.view()


@app.post("/players/{player_id}/day/answer", response_model=SessionView)
async def submit_answer(
    player_id: str,
    body: AnswerRequest,
    clock: Clock = Depends(get_clock),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = _current_controller(player_id, registry, clock)
    await controller.submit_answer(body.answer, timed_out=body.timed_out)
    return controller.view()


@app.post("/players/{player_id}/day/continue", response_model=SessionView)
async def continue_day(
    player_id: str,
    clock: Clock = Depends(get_clock),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = _current_controller(player_id, registry, clock)
    controller.acknowledge()
    return controller.view()


@app.get("/players/{player_id}/day/share", response_model=ShareResponse)
async def share_day(
    player_id: str,
    clock: Clock = Depends(get_clock),
    registry: SessionRegistry = Depends(get_registry),
):
    controller = _current_controller(player_id, registry, clock)
    if controller.phase is not Phase.RESULT:
        raise InvalidTransition("the day is not finished yet")
    return ShareResponse(text=share_text(controller.view()))


# Admin Endpoints

@app.post("/admin/seed_questions", response_model=SeedQuestionsResponse)
def seed_questions(
    body: SeedQuestionsRequest,
    db: Session = Depends(get_db),
    x_admin_key: str = Header(...),
):
    """Schedule questions in the bank.

    Requires X-ADMIN-KEY header matching the ADMIN_KEY env var.
    Upserts on (date, slot) so a day's questions can be corrected in place.
    """
    if not ADMIN_KEY or x_admin_key != ADMIN_KEY:
        raise HTTPException(status_code=403, detail="Invalid or missing admin key")

    created = 0
    updated = 0
    for item in body.questions:
        question_date = item.question_date.isoformat()
        existing = db.query(DailyQuestion).filter(
            DailyQuestion.question_date == question_date,
            DailyQuestion.slot == item.slot,
        ).first()

        values = {
            "day": item.day,
            "category": item.category,
            "question": item.question,
            "answer": item.answer,
            "alternate_answers_json": json.dumps(item.alternate_answers),
        }
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            updated += 1
        else:
            db.add(DailyQuestion(question_date=question_date, slot=item.slot, **values))
            db.flush()
            created += 1

    db.commit()
    return SeedQuestionsResponse(created=created, updated=updated)
