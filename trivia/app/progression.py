"""Durable player progression: points, streak, day budget and history.

The record is stored as camelCase JSON, stamped with ``schemaVersion``.
Loading walks the stored payload forward through every migration step, then
applies streak decay. Only ``commit_day`` advances the streak.
"""
import json
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .clock import Clock, days_between
from .errors import PersistenceFailure

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_VERSION = 3


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionOutcome(_CamelModel):
    """How one question of a committed day was resolved."""
    model_config = ConfigDict(frozen=True)

    correct: bool
    timed_out: bool = False
    wager: int = 0
    method: Optional[str] = None


class DayResult(_CamelModel):
    """One committed day. Entries are never modified once appended.

    Single-question records written before multi-question days existed carry
    ``correct``/``timedOut``/``wager`` at the top level instead of
    ``questions``; ``outcomes()`` reads either shape.
    """
    model_config = ConfigDict(frozen=True)

    day: int
    played_on: Optional[date] = Field(default=None, alias="date")
    questions: Optional[List[QuestionOutcome]] = None
    correct: Optional[bool] = None
    timed_out: Optional[bool] = None
    wager: Optional[int] = None
    points_before: int = 0
    points_after: int = 0

    def outcomes(self) -> List[QuestionOutcome]:
        if self.questions is not None:
            return list(self.questions)
        return [
            QuestionOutcome(
                correct=bool(self.correct),
                timed_out=bool(self.timed_out),
                wager=self.wager or 0,
            )
        ]


class PlayerRecord(_CamelModel):
    schema_version: int = CURRENT_SCHEMA_VERSION
    points: int = 0
    streak: int = 0
    longest_streak: int = 0
    total_correct: int = 0
    total_played: int = 0
    last_played_date: Optional[date] = None
    last_played_day: Optional[int] = None
    day_start_points: Optional[int] = None
    day_started_day: Optional[int] = None
    history: List[DayResult] = Field(default_factory=list)

    @field_validator("points", "streak", "longest_streak", "total_correct", "total_played")
    @classmethod
    def _never_negative(cls, v: int) -> int:
        return max(0, v)

    def day_result(self, day_id: int) -> Optional[DayResult]:
        """Most recent history entry for ``day_id``."""
        for entry in reversed(self.history):
            if entry.day == day_id:
                return entry
        return None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# --- Schema migrations ---
#
# Each step takes the payload at version N and returns it at version N + 1.
# Steps only add fields, with defaults that keep existing semantics, and are
# safe to apply twice.

def _add_day_budget(payload: Dict[str, Any]) -> Dict[str, Any]:
    payload.setdefault("dayStartPoints", None)
    payload.setdefault("dayStartedDay", None)
    return payload


def _add_longest_streak(payload: Dict[str, Any]) -> Dict[str, Any]:
    payload.setdefault("longestStreak", payload.get("streak") or 0)
    return payload


MIGRATIONS: List[Tuple[int, Callable[[Dict[str, Any]], Dict[str, Any]]]] = [
    (1, _add_day_budget),
    (2, _add_longest_streak),
]


def migrate(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a stored payload up to ``CURRENT_SCHEMA_VERSION``.

    Records saved before versioning existed have no ``schemaVersion`` and
    count as version 1.
    """
    version = payload.get("schemaVersion") or 1
    if version > CURRENT_SCHEMA_VERSION:
        logger.warning(
            "Stored player record has schema version %s, newer than %s; reading as-is",
            version, CURRENT_SCHEMA_VERSION,
        )
        return payload

    for from_version, step in MIGRATIONS:
        if version == from_version:
            payload = step(payload)
            version = from_version + 1
    payload["schemaVersion"] = version
    return payload


def parse_record(raw: Optional[str]) -> Optional[PlayerRecord]:
    """Deserialize and migrate a stored payload. Unreadable state returns None."""
    if raw is None:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        logger.warning("Discarding player record that is not valid JSON")
        return None
    if not isinstance(payload, dict):
        logger.warning("Discarding player record that is not a JSON object")
        return None
    try:
        return PlayerRecord.model_validate(migrate(payload))
    except (ValidationError, TypeError) as exc:
        logger.warning("Discarding player record that fails validation: %s", exc)
        return None


def apply_streak_decay(record: PlayerRecord, today: date) -> Tuple[PlayerRecord, bool]:
    """Reset points and streak if more than one calendar day was skipped.

    Lifetime counters and history survive. Returns the record and whether a
    positive streak was lost.
    """
    if record.last_played_date is None:
        return record, False
    if days_between(record.last_played_date, today) <= 1:
        return record, False

    missed = record.streak > 0
    decayed = record.model_copy(update={
        "points": 0,
        "streak": 0,
        "day_start_points": None,
        "day_started_day": None,
    })
    return decayed, missed


def snapshot_day_budget(record: PlayerRecord, day_id: int) -> PlayerRecord:
    """Take the day's wager budget the first time ``day_id`` is seen."""
    if record.day_started_day == day_id:
        return record
    return record.model_copy(update={
        "day_start_points": record.points,
        "day_started_day": day_id,
    })


def commit_day(
    record: PlayerRecord,
    day_id: int,
    results: Sequence[bool],
    timed_outs: Sequence[bool],
    wagers: Sequence[int],
    today: date,
    methods: Optional[Sequence[Optional[str]]] = None,
) -> PlayerRecord:
    """Apply a fully played day. The only place the streak advances."""
    if not (len(results) == len(timed_outs) == len(wagers)):
        raise ValueError("results, timed_outs and wagers must have the same length")
    methods = list(methods) if methods is not None else [None] * len(results)

    points_before = record.day_start_points
    if points_before is None or record.day_started_day != day_id:
        points_before = record.points

    points_change = sum(w if ok else -w for ok, w in zip(results, wagers))
    points_after = max(0, points_before + points_change)
    streak = record.streak + 1

    entry = DayResult(
        day=day_id,
        date=today,
        questions=[
            QuestionOutcome(correct=ok, timed_out=to, wager=w, method=m)
            for ok, to, w, m in zip(results, timed_outs, wagers, methods)
        ],
        points_before=points_before,
        points_after=points_after,
    )

    return record.model_copy(update={
        "points": points_after,
        "streak": streak,
        "longest_streak": max(record.longest_streak, streak),
        "total_correct": record.total_correct + sum(1 for ok in results if ok),
        "total_played": record.total_played + len(results),
        "last_played_date": today,
        "last_played_day": day_id,
        "day_start_points": None,
        "day_started_day": None,
        "history": [*record.history, entry],
    })


class StateBackend(Protocol):
    def get(self, player_id: str) -> Optional[str]:
        ...

    def put(self, player_id: str, payload: str, schema_version: int) -> None:
        ...


class ProgressionStore:
    """Repository for player records over an injected storage backend."""

    def __init__(self, backend: StateBackend, clock: Clock):
        self.backend = backend
        self.clock = clock

    def load_status(self, player_id: str) -> Tuple[PlayerRecord, bool]:
        """Load, migrate and decay a record. Never fails.

        Returns the record and whether a streak was lost to a missed day.
        """
        try:
            raw = self.backend.get(player_id)
        except PersistenceFailure as exc:
            logger.warning("Could not read player %s, starting fresh: %s", player_id, exc)
            raw = None

        record = parse_record(raw)
        if record is None:
            return PlayerRecord(), False
        return apply_streak_decay(record, self.clock.today())

    def load(self, player_id: str) -> PlayerRecord:
        record, _ = self.load_status(player_id)
        return record

    def save(self, player_id: str, record: PlayerRecord) -> bool:
        """Persist the record. Failures are logged and swallowed."""
        stamped = record.model_copy(update={"schema_version": CURRENT_SCHEMA_VERSION})
        try:
            self.backend.put(player_id, json.dumps(stamped.to_payload()), CURRENT_SCHEMA_VERSION)
        except PersistenceFailure as exc:
            logger.warning("Player %s state not saved: %s", player_id, exc)
            return False
        return True
