"""Application settings."""
import os
from pathlib import Path

# Database file lives at repo root unless DATABASE_URL points elsewhere
REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{REPO_ROOT / 'trivia.db'}")

# Admin API key for privileged endpoints (must be set in production)
ADMIN_KEY = os.getenv("ADMIN_KEY", "")

# Semantic judge (last matching tier). An empty key disables the judge and
# every escalation to it resolves as "ai-error".
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_API_URL = os.getenv("ANTHROPIC_API_URL", "https://api.anthropic.com/v1/messages")
JUDGE_MODEL = os.getenv("JUDGE_MODEL", "claude-haiku-4-5-20251001")
JUDGE_TIMEOUT_SECONDS = float(os.getenv("JUDGE_TIMEOUT_SECONDS", "8"))

# Ordered, comma separated tier names used by the answer matcher
MATCH_TIERS = [
    name.strip()
    for name in os.getenv("MATCH_TIERS", "exact,normalized,keyword,word-set,ai").split(",")
    if name.strip()
]

# "Today" is always computed in this zone, for the question bank and players alike
QUESTION_TIMEZONE = os.getenv("QUESTION_TIMEZONE", "UTC")

# Seconds a player has to answer each question
QUESTION_SECONDS = int(os.getenv("QUESTION_SECONDS", "30"))

# Single-question days let players wager up to max(points, this)
SINGLE_MIN_MAX_WAGER = int(os.getenv("SINGLE_MIN_MAX_WAGER", "1000"))

# Another deployment serving /today-questions. Empty reads the local question bank.
QUESTION_PROVIDER_URL = os.getenv("QUESTION_PROVIDER_URL", "")
# "0" fetches the legacy single-question /today-question endpoint instead
QUESTION_PROVIDER_MULTI = os.getenv("QUESTION_PROVIDER_MULTI", "1") != "0"
QUESTION_PROVIDER_TIMEOUT_SECONDS = float(os.getenv("QUESTION_PROVIDER_TIMEOUT_SECONDS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
