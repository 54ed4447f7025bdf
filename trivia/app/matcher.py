"""Tiered answer matching.

Trivia answers admit many acceptable surface forms (case, punctuation,
plurals, last name only, multi-item answers in any order). The matcher tries
the cheapest, most precise checks first and escalates only on failure:

1. exact       - case-insensitive equality with the answer or an alternate
2. normalized  - equality after ``normalize()``
3. keyword     - last significant word, or a single distinctive user word
4. word-set    - every content token of a 3+ token answer, in any order
5. ai          - the semantic judge; failures resolve as "ai-error"

Each tier returns a ``MatchResult`` or ``None`` to pass to the next one.
"""
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

from .errors import JudgeUnavailable
from .judge import Judge
from .normalizer import normalize, tokenize

logger = logging.getLogger(__name__)


class MatchMethod(str, Enum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    KEYWORD = "keyword"
    WORD_SET = "word-set"
    AI = "ai"
    AI_ERROR = "ai-error"


@dataclass(frozen=True)
class MatchResult:
    correct: bool
    method: Optional[MatchMethod]

    def as_dict(self) -> dict:
        return {
            "correct": self.correct,
            "method": self.method.value if self.method else None,
        }


@dataclass(frozen=True)
class MatchRequest:
    user_answer: str
    correct_answer: str
    alternate_answers: Sequence[str] = ()
    question: str = ""
    category: str = ""


TierResult = Union[Optional[MatchResult], Awaitable[Optional[MatchResult]]]
Tier = Callable[[MatchRequest], TierResult]


def tier_exact(req: MatchRequest) -> Optional[MatchResult]:
    user = req.user_answer.lower()
    if user == req.correct_answer.lower() or user in [a.lower() for a in req.alternate_answers]:
        return MatchResult(True, MatchMethod.EXACT)
    return None


def tier_normalized(req: MatchRequest) -> Optional[MatchResult]:
    user = normalize(req.user_answer)
    if user == normalize(req.correct_answer) or user in [normalize(a) for a in req.alternate_answers]:
        return MatchResult(True, MatchMethod.NORMALIZED)
    return None


def tier_keyword(req: MatchRequest) -> Optional[MatchResult]:
    user_words = normalize(req.user_answer).split(" ")
    correct_words = normalize(req.correct_answer).split(" ")

    # Last-name-only answers
    last = correct_words[-1]
    if len(last) > 2 and last in user_words:
        return MatchResult(True, MatchMethod.KEYWORD)

    # A single distinctive word taken from the answer
    if len(user_words) == 1 and len(user_words[0]) > 3 and user_words[0] in correct_words:
        return MatchResult(True, MatchMethod.KEYWORD)
    return None


def tier_word_set(req: MatchRequest) -> Optional[MatchResult]:
    correct_tokens = tokenize(req.correct_answer)
    if len(correct_tokens) < 3:
        return None
    user_tokens = set(tokenize(req.user_answer))
    if all(token in user_tokens for token in correct_tokens):
        return MatchResult(True, MatchMethod.WORD_SET)
    return None


def judge_tier(judge: Judge) -> Tier:
    """Build the asynchronous last-resort tier around a judge collaborator."""

    async def tier_ai(req: MatchRequest) -> MatchResult:
        try:
            correct = await judge.verdict(
                req.category, req.question, req.correct_answer, req.user_answer
            )
        except JudgeUnavailable as exc:
            logger.warning("Judge unavailable, answer judged incorrect: %s", exc)
            return MatchResult(False, MatchMethod.AI_ERROR)
        return MatchResult(correct, MatchMethod.AI)

    return tier_ai


DETERMINISTIC_TIERS: Dict[str, Tier] = {
    MatchMethod.EXACT.value: tier_exact,
    MatchMethod.NORMALIZED.value: tier_normalized,
    MatchMethod.KEYWORD.value: tier_keyword,
    MatchMethod.WORD_SET.value: tier_word_set,
}


class Matcher:
    """Evaluates tiers in order until one yields a verdict."""

    def __init__(self, tiers: List[Tier]):
        self.tiers = tiers

    async def match(
        self,
        user_answer: str,
        correct_answer: str,
        alternate_answers: Sequence[str] = (),
        question: str = "",
        category: str = "",
    ) -> MatchResult:
        req = MatchRequest(user_answer, correct_answer, tuple(alternate_answers), question, category)
        for tier in self.tiers:
            result = tier(req)
            if inspect.isawaitable(result):
                result = await result
            if result is not None:
                return result
        return MatchResult(False, None)


def build_matcher(tier_names: Sequence[str], judge: Optional[Judge] = None) -> Matcher:
    """Compose a matcher from tier names, e.g. ``["exact", "keyword", "ai"]``."""
    tiers: List[Tier] = []
    for name in tier_names:
        if name == MatchMethod.AI.value:
            if judge is None:
                raise ValueError("the 'ai' tier needs a judge")
            tiers.append(judge_tier(judge))
        elif name in DETERMINISTIC_TIERS:
            tiers.append(DETERMINISTIC_TIERS[name])
        else:
            raise ValueError(f"unknown match tier: {name!r}")
    return Matcher(tiers)
