"""
Pytest configuration and shared test doubles
"""
import os

# Never touch the repo-root database from tests; must be set before app imports
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ANTHROPIC_API_KEY", "")

from trivia.app.errors import JudgeUnavailable, ProviderUnavailable  # noqa: E402


class StubJudge:
    """Judge returning a canned verdict, or failing when ``verdict_value`` is None."""

    def __init__(self, verdict_value=True):
        self.verdict_value = verdict_value
        self.calls = []

    async def verdict(self, category, question, correct_answer, user_answer):
        self.calls.append((category, question, correct_answer, user_answer))
        if self.verdict_value is None:
            raise JudgeUnavailable("stub judge is down")
        return self.verdict_value


class StaticProvider:
    """Question provider serving a fixed bundle, or failing a set number of times."""

    def __init__(self, bundle, failures=0):
        self.bundle = bundle
        self.failures = failures
        self.calls = 0

    async def fetch_today(self):
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise ProviderUnavailable("No question available for today.")
        return self.bundle
