"""One player's day of play.

Phases run ``WAGER(i) -> QUESTION(i) -> INTER_RESULT(i) -> WAGER(i+1) ... ->
RESULT``. The controller is the only writer of the player's record while a
day is in progress and commits it exactly once, when the last question is
resolved.

Everything happens on one asyncio event loop. The only suspension points
are the question fetch and the answer check; anything that comes back after
the controller has moved on is discarded.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from .clock import Clock
from .errors import InvalidTransition, InvalidWager, ProviderUnavailable, ValidationInputError
from .matcher import Matcher
from .progression import PlayerRecord, ProgressionStore, commit_day, snapshot_day_budget
from .questions import DayQuestions, Question, QuestionProvider
from .schemas import OutcomeView, SessionView
from .settings import QUESTION_SECONDS, SINGLE_MIN_MAX_WAGER

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    WAGER = "wager"
    QUESTION = "question"
    INTER_RESULT = "inter_result"
    RESULT = "result"


@dataclass(frozen=True)
class SlotOutcome:
    correct: bool
    timed_out: bool
    method: Optional[str]
    wager: int


def max_wager(budget: int, locked: List[int], index: int, total: int) -> int:
    """Largest wager allowed on question ``index`` of a multi-question day.

    Keeps one point in reserve for every question still to come, so the sum
    of all locked wagers never exceeds ``budget``.
    """
    remaining_after = total - 1 - index
    return budget - sum(locked[:index]) - remaining_after


class Countdown:
    """Ticking countdown that calls ``on_expire`` at most once.

    ``cancel()`` makes it inert immediately, including a tick that is
    already scheduled.
    """

    def __init__(
        self,
        seconds: int,
        on_expire: Callable[[], Awaitable[None]],
        on_tick: Optional[Callable[[int], None]] = None,
        interval: float = 1.0,
    ):
        self.remaining = seconds
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.interval = interval
        self.fired = False
        self.cancelled = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self.interval)
            if self.cancelled:
                return
            self.remaining -= 1
            if self.on_tick:
                self.on_tick(self.remaining)
        await self.expire()

    async def expire(self) -> None:
        if self.fired or self.cancelled:
            return
        self.fired = True
        await self.on_expire()

    def cancel(self) -> None:
        self.cancelled = True
        if self._task is None or self._task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # Expiry resolves the slot, which cancels the countdown from inside its own task
        if self._task is not current:
            self._task.cancel()


class SessionController:
    """Drives one day for one player."""

    def __init__(
        self,
        player_id: str,
        store: ProgressionStore,
        provider: QuestionProvider,
        matcher: Matcher,
        clock: Clock,
        question_seconds: int = QUESTION_SECONDS,
        tick_interval: float = 1.0,
        single_min_max_wager: int = SINGLE_MIN_MAX_WAGER,
    ):
        self.player_id = player_id
        self.store = store
        self.provider = provider
        self.matcher = matcher
        self.clock = clock
        self.question_seconds = question_seconds
        self.tick_interval = tick_interval
        self.single_min_max_wager = single_min_max_wager

        self.phase = Phase.LOADING
        self.error: Optional[str] = None
        self.bundle: Optional[DayQuestions] = None
        self.record: Optional[PlayerRecord] = None
        self.missed_day = False
        self.already_played = False

        self.index = 0
        self.wagers: List[int] = []
        self.outcomes: List[SlotOutcome] = []
        self.answer = ""
        self.checking = False
        self.time_left: Optional[int] = None
        self.countdown: Optional[Countdown] = None

    # --- Derived state ---

    @property
    def total(self) -> int:
        return len(self.bundle.questions) if self.bundle else 0

    @property
    def multi(self) -> bool:
        return self.total > 1

    @property
    def current_question(self) -> Optional[Question]:
        if not self.bundle:
            return None
        return self.bundle.questions[self.index]

    def day_budget(self) -> int:
        points = self.record.day_start_points
        if points is None:
            points = self.record.points
        if self.multi:
            # Floor of one point per question so a broke player can still play.
            # Below N points the locked total can exceed dayStartPoints; commit_day clamps at 0.
            return max(points, self.total)
        return points

    def wager_bounds(self) -> Tuple[int, int]:
        budget = self.day_budget()
        if not self.multi:
            return 0, max(budget, self.single_min_max_wager)
        return 1, max_wager(budget, self.wagers, self.index, self.total)

    # --- Loading ---

    async def start(self) -> None:
        """Fetch today's questions and enter the day (or restore a finished one)."""
        if self.phase not in (Phase.LOADING, Phase.ERROR):
            raise InvalidTransition(f"day already started (phase {self.phase.value})")
        self.phase = Phase.LOADING
        self.error = None

        try:
            bundle = await self.provider.fetch_today()
        except ProviderUnavailable as exc:
            logger.info("Questions unavailable for player %s: %s", self.player_id, exc)
            self.phase = Phase.ERROR
            self.error = str(exc)
            return

        if self.phase is not Phase.LOADING:
            return
        self._enter_day(bundle)

    async def retry(self) -> None:
        if self.phase is not Phase.ERROR:
            raise InvalidTransition("nothing to retry")
        await self.start()

    def _enter_day(self, bundle: DayQuestions) -> None:
        self.bundle = bundle
        record, self.missed_day = self.store.load_status(self.player_id)

        if record.last_played_day == bundle.day:
            self._restore_result(record)
            return

        record = snapshot_day_budget(record, bundle.day)
        self.record = record
        self.store.save(self.player_id, record)
        self.index = 0
        self.phase = Phase.WAGER

    def _restore_result(self, record: PlayerRecord) -> None:
        """Rebuild the terminal view of an already-played day from history."""
        self.record = record
        self.already_played = True
        entry = record.day_result(self.bundle.day)
        if entry is not None:
            self.outcomes = [
                SlotOutcome(o.correct, o.timed_out, o.method, o.wager)
                for o in entry.outcomes()
            ]
            self.wagers = [o.wager for o in self.outcomes]
        self.index = self.total - 1
        self.phase = Phase.RESULT

    # --- Play ---

    def place_wager(self, wager: int) -> None:
        if self.phase is not Phase.WAGER:
            raise InvalidTransition(f"cannot wager during {self.phase.value}")
        if isinstance(wager, bool) or not isinstance(wager, int):
            raise InvalidWager("wager must be a whole number")

        low, high = self.wager_bounds()
        if not low <= wager <= high:
            raise InvalidWager(f"wager must be between {low} and {high}")

        self.wagers.append(wager)
        self.answer = ""
        self.phase = Phase.QUESTION
        self._start_countdown(self.index)

    def _start_countdown(self, slot: int, seconds: Optional[int] = None) -> None:
        async def on_expire() -> None:
            if self._slot_open(slot):
                logger.info("Player %s ran out of time on question %s", self.player_id, slot)
                self._resolve(slot, SlotOutcome(False, True, None, self.wagers[slot]))

        def on_tick(remaining: int) -> None:
            if self._slot_open(slot):
                self.time_left = remaining

        if seconds is None:
            seconds = self.question_seconds
        self.time_left = seconds
        self.countdown = Countdown(seconds, on_expire, on_tick, self.tick_interval)
        self.countdown.start()

    def _cancel_countdown(self) -> None:
        if self.countdown is not None:
            self.countdown.cancel()

    def _slot_open(self, slot: int) -> bool:
        return (
            self.phase is Phase.QUESTION
            and self.index == slot
            and len(self.outcomes) == slot
        )

    async def submit_answer(self, answer: str, timed_out: bool = False) -> None:
        """Resolve the current question by answer or by an explicit timeout.

        Whichever resolves the slot first wins; a verdict that arrives after a
        timeout already resolved it is dropped.
        """
        if self.phase is not Phase.QUESTION:
            raise InvalidTransition(f"cannot answer during {self.phase.value}")
        slot = self.index

        if timed_out:
            self._resolve(slot, SlotOutcome(False, True, None, self.wagers[slot]))
            return

        answer = (answer or "").strip()
        if not answer:
            raise ValidationInputError("answer must not be blank")
        if self.checking:
            raise InvalidTransition("answer already submitted")

        self.checking = True
        self.answer = answer
        self._cancel_countdown()
        question = self.current_question
        try:
            result = await self.matcher.match(
                answer,
                question.answer,
                question.alternate_answers,
                question.question,
                question.category,
            )
        except Exception:
            # The countdown was cancelled on submit; give the slot its clock back
            if self._slot_open(slot):
                self.checking = False
                self._start_countdown(slot, self.time_left)
            raise

        if not self._slot_open(slot):
            logger.debug("Dropping late verdict for player %s question %s", self.player_id, slot)
            return
        method = result.method.value if result.method else None
        self._resolve(slot, SlotOutcome(result.correct, False, method, self.wagers[slot]))

    def _resolve(self, slot: int, outcome: SlotOutcome) -> None:
        if not self._slot_open(slot):
            return
        self._cancel_countdown()
        self.checking = False
        self.outcomes.append(outcome)

        if slot < self.total - 1:
            self.phase = Phase.INTER_RESULT
            return
        self._commit()
        self.phase = Phase.RESULT

    def _commit(self) -> None:
        record = commit_day(
            self.record,
            self.bundle.day,
            [o.correct for o in self.outcomes],
            [o.timed_out for o in self.outcomes],
            [o.wager for o in self.outcomes],
            self.clock.today(),
            methods=[o.method for o in self.outcomes],
        )
        self.record = record
        self.store.save(self.player_id, record)
        logger.info(
            "Player %s finished day %s: %s/%s correct, %s points",
            self.player_id, self.bundle.day,
            sum(1 for o in self.outcomes if o.correct), self.total, record.points,
        )

    def acknowledge(self) -> None:
        """Move on from an inter-question result to the next wager."""
        if self.phase is not Phase.INTER_RESULT:
            raise InvalidTransition(f"nothing to continue from during {self.phase.value}")
        self.index += 1
        self.answer = ""
        self.time_left = None
        self.phase = Phase.WAGER

    # --- Presentation snapshot ---

    def view(self) -> SessionView:
        view = SessionView(
            phase=self.phase.value,
            error=self.error,
            missed_day=self.missed_day,
            already_played=self.already_played,
        )
        if self.bundle is None or self.record is None:
            return view

        question = self.current_question
        view.day = self.bundle.day
        view.index = self.index
        view.total_questions = self.total
        view.category = question.category
        view.wagers = list(self.wagers)
        view.outcomes = [
            OutcomeView(correct=o.correct, timed_out=o.timed_out, method=o.method, wager=o.wager)
            for o in self.outcomes
        ]
        view.revealed_answers = [q.answer for q in self.bundle.questions[:len(self.outcomes)]]
        view.points = self.record.points
        view.streak = self.record.streak
        view.longest_streak = self.record.longest_streak
        view.total_correct = self.record.total_correct
        view.total_played = self.record.total_played

        if self.phase is Phase.WAGER:
            view.min_wager, view.max_wager = self.wager_bounds()
        if self.phase in (Phase.QUESTION, Phase.INTER_RESULT, Phase.RESULT):
            view.question = question.question
            view.answer = self.answer or None
            view.checking = self.checking
        if self.phase is Phase.QUESTION:
            view.time_left = self.time_left
        if self.phase is Phase.RESULT:
            view.points_delta = sum(o.wager if o.correct else -o.wager for o in self.outcomes)
        return view


class SessionRegistry:
    """In-process controllers, one per player for the current day."""

    def __init__(self):
        self._controllers: Dict[str, Tuple[date, SessionController]] = {}

    def get(self, player_id: str, today: date) -> Optional[SessionController]:
        entry = self._controllers.get(player_id)
        if entry is None or entry[0] != today:
            return None
        return entry[1]

    def put(self, controller: SessionController, today: date) -> None:
        # A new day replaces yesterday's controller
        self._controllers[controller.player_id] = (today, controller)

    def clear(self) -> None:
        self._controllers.clear()
