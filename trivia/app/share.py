"""Plain-text summary a player can paste after finishing the day."""
from .schemas import SessionView

PLAY_URL = "yousureabout.that"
TITLE = "You Sure About That?"


def format_points(n: int) -> str:
    """1234 -> "1,234", 2500000 -> "2.50M", 3000000000 -> "3B"."""
    if n >= 1_000_000_000:
        return _trim(f"{n / 1_000_000_000:.2f}") + "B"
    if n >= 1_000_000:
        return _trim(f"{n / 1_000_000:.2f}") + "M"
    if n >= 1_000:
        return f"{n:,}"
    return str(n)


def _trim(value: str) -> str:
    if value.endswith(".00"):
        return value[:-3]
    return value


def _outcome_label(correct: bool, timed_out: bool) -> str:
    if correct:
        return "Answered Correctly"
    if timed_out:
        return "Ran Out of Time"
    return "Answered Incorrectly"


def share_text(view: SessionView) -> str:
    """Shareable lines for a finished day. Answers are never included."""
    lines = [f"{TITLE} #{view.day or 0:03d}"]
    if len(view.outcomes) == 1:
        only = view.outcomes[0]
        lines.append(_outcome_label(only.correct, only.timed_out))
        lines.append(f"Category: {view.category}")
    else:
        for i, outcome in enumerate(view.outcomes, start=1):
            lines.append(f"Q{i}: {_outcome_label(outcome.correct, outcome.timed_out)}")
    lines.append(f"Wagered: {format_points(sum(view.wagers))} pts")
    lines.append(f"Total: {format_points(view.points)} pts")
    lines.append(f"Streak: {view.streak} days")
    lines.append("")
    lines.append(f"Play at {PLAY_URL}")
    return "\n".join(lines)
