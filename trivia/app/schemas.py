"""Pydantic schemas for request/response validation."""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, as the rendering layer expects."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValidateRequest(CamelModel):
    """Body of POST /validate."""
    user_answer: str = Field(..., min_length=1)
    correct_answer: str = Field(..., min_length=1)
    alternate_answers: List[str]
    question: str = ""
    category: str = ""


class MatchResultResponse(BaseModel):
    """Verdict returned by POST /validate."""
    correct: bool
    method: Optional[str] = None


class SeedQuestion(CamelModel):
    """One question of the bank, scheduled for a date."""
    question_date: date
    day: int = Field(..., ge=1)
    slot: int = Field(0, ge=0)
    category: str
    question: str
    answer: str
    alternate_answers: List[str] = Field(default_factory=list)


class SeedQuestionsRequest(CamelModel):
    questions: List[SeedQuestion] = Field(..., min_length=1)


class SeedQuestionsResponse(CamelModel):
    created: int
    updated: int


class WagerRequest(CamelModel):
    wager: int


class AnswerRequest(CamelModel):
    answer: str = ""
    timed_out: bool = False


class OutcomeView(CamelModel):
    correct: bool
    timed_out: bool
    method: Optional[str] = None
    wager: int


class SessionView(CamelModel):
    """Snapshot of one player's day for the rendering layer."""
    phase: str
    day: Optional[int] = None
    index: int = 0
    total_questions: int = 0
    category: Optional[str] = None
    question: Optional[str] = None
    answer: Optional[str] = None
    checking: bool = False
    time_left: Optional[int] = None
    min_wager: Optional[int] = None
    max_wager: Optional[int] = None
    wagers: List[int] = Field(default_factory=list)
    outcomes: List[OutcomeView] = Field(default_factory=list)
    revealed_answers: List[str] = Field(default_factory=list)
    points: int = 0
    streak: int = 0
    longest_streak: int = 0
    total_correct: int = 0
    total_played: int = 0
    points_delta: Optional[int] = None
    already_played: bool = False
    missed_day: bool = False
    error: Optional[str] = None


class ShareResponse(BaseModel):
    text: str
