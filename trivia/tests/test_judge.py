"""Test the semantic judge against a mocked Messages API."""
import json

import httpx
import pytest

from trivia.app.errors import JudgeUnavailable
from trivia.app.judge import AnthropicJudge, build_prompt, parse_verdict


def reply(text):
    return {"content": [{"type": "text", "text": text}]}


def make_judge(handler, api_key="test-key"):
    return AnthropicJudge(
        api_key=api_key,
        api_url="https://judge.test/v1/messages",
        model="test-model",
        timeout=2,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.parametrize(
    "text, expected",
    [
        ("YES", True),
        ("yes", True),
        (" Yes. ", True),
        ("NO", False),
        ("No!", False),
    ],
)
def test_parse_verdict(text, expected):
    assert parse_verdict(reply(text)) is expected


@pytest.mark.parametrize(
    "payload",
    [
        reply("Maybe"),
        reply("YES, definitely"),
        {"content": []},
        {"error": "overloaded"},
        {"content": [{"type": "text", "text": None}]},
        None,
    ],
)
def test_parse_verdict_rejects_unusable_replies(payload):
    with pytest.raises(JudgeUnavailable):
        parse_verdict(payload)


def test_build_prompt_includes_all_context():
    prompt = build_prompt("NFL", "Who won SB LI?", "New England Patriots", "Patriots")
    assert "Category: NFL" in prompt
    assert "Question: Who won SB LI?" in prompt
    assert "Correct answer: New England Patriots" in prompt
    assert "Player answered: Patriots" in prompt
    assert prompt.endswith("YES or NO.")


@pytest.mark.asyncio
async def test_verdict_sends_messages_request():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=reply("YES"))

    judge = make_judge(handler)
    assert await judge.verdict("NFL", "Who?", "Tom Brady", "TB12") is True

    assert seen["url"] == "https://judge.test/v1/messages"
    assert seen["headers"]["x-api-key"] == "test-key"
    assert seen["headers"]["anthropic-version"] == "2023-06-01"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["max_tokens"] == 10
    assert "Player answered: TB12" in seen["body"]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_verdict_no():
    judge = make_judge(lambda request: httpx.Response(200, json=reply("NO")))
    assert await judge.verdict("", "", "Tom Brady", "Peyton Manning") is False


@pytest.mark.asyncio
async def test_non_success_status_is_unavailable():
    judge = make_judge(lambda request: httpx.Response(529, json={"error": "overloaded"}))
    with pytest.raises(JudgeUnavailable, match="529"):
        await judge.verdict("", "", "a", "b")


@pytest.mark.asyncio
async def test_transport_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    judge = make_judge(handler)
    with pytest.raises(JudgeUnavailable):
        await judge.verdict("", "", "a", "b")


@pytest.mark.asyncio
async def test_non_json_body_is_unavailable():
    judge = make_judge(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(JudgeUnavailable, match="not JSON"):
        await judge.verdict("", "", "a", "b")


@pytest.mark.asyncio
@pytest.mark.parametrize("api_key", ["", "your-key-here"])
async def test_missing_key_never_calls_out(api_key):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=reply("YES"))

    judge = make_judge(handler, api_key=api_key)
    assert judge.configured is False
    with pytest.raises(JudgeUnavailable, match="not configured"):
        await judge.verdict("", "", "a", "b")
    assert calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "api_key, api_url",
    [
        ("sk-ant-’abc", "https://judge.test/v1/messages"),
        ("test-key", "http://[judge.test/v1/messages"),
    ],
)
async def test_unbuildable_request_is_unavailable(api_key, api_url):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=reply("YES"))

    judge = AnthropicJudge(
        api_key=api_key, api_url=api_url, transport=httpx.MockTransport(handler)
    )
    with pytest.raises(JudgeUnavailable, match="request failed"):
        await judge.verdict("", "", "Tom Brady", "Peyton Manning")
    assert calls == []
