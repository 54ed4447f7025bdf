"""Semantic judge collaborator for the last matching tier.

The judge is a chat-style model asked for a strict YES/NO verdict. Every
failure mode (missing credentials, transport errors, non-success status,
unparseable replies) surfaces as ``JudgeUnavailable``; the matcher turns that
into an "ai-error" verdict.
"""
import logging
from typing import Optional, Protocol

import httpx

from .errors import JudgeUnavailable
from .settings import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_API_URL,
    JUDGE_MODEL,
    JUDGE_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
PLACEHOLDER_KEY = "your-key-here"
SYSTEM_PROMPT = "You are a strict trivia judge. Reply YES or NO only."


class Judge(Protocol):
    async def verdict(
        self, category: str, question: str, correct_answer: str, user_answer: str
    ) -> bool:
        ...


def build_prompt(category: str, question: str, correct_answer: str, user_answer: str) -> str:
    return (
        f"Category: {category}\n"
        f"Question: {question}\n"
        f"Correct answer: {correct_answer}\n"
        f"Player answered: {user_answer}\n\n"
        "Is the player's answer correct? YES or NO."
    )


def parse_verdict(payload) -> bool:
    """Extract YES/NO from a Messages API response body."""
    try:
        text = payload["content"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise JudgeUnavailable("judge response has no text content") from exc
    if not isinstance(text, str):
        raise JudgeUnavailable("judge response text is not a string")

    word = text.strip().upper().rstrip(".!")
    if word == "YES":
        return True
    if word == "NO":
        return False
    raise JudgeUnavailable(f"judge replied with an unrecognised verdict: {text!r}")


class AnthropicJudge:
    """Judge backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str = ANTHROPIC_API_KEY,
        api_url: str = ANTHROPIC_API_URL,
        model: str = JUDGE_MODEL,
        timeout: float = JUDGE_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_KEY

    async def verdict(
        self, category: str, question: str, correct_answer: str, user_answer: str
    ) -> bool:
        if not self.configured:
            raise JudgeUnavailable("judge API key is not configured")

        body = {
            "model": self.model,
            "max_tokens": 10,
            "system": SYSTEM_PROMPT,
            "messages": [
                {
                    "role": "user",
                    "content": build_prompt(category, question, correct_answer, user_answer),
                }
            ],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

        # Bad URLs and non-ASCII keys fail while the request is built, outside HTTPError
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=body, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as exc:
            logger.warning("Judge request failed: %s", exc)
            raise JudgeUnavailable(f"judge request failed: {exc}") from exc

        if not response.is_success:
            logger.warning("Judge returned HTTP %s", response.status_code)
            raise JudgeUnavailable(f"judge returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise JudgeUnavailable("judge response is not JSON") from exc

        return parse_verdict(payload)
