import json

import httpx
import pytest

from app.core.ai_engine import (
    FALLBACK_REVIEW,
    AICreditsExhaustedError,
    AIGatewayError,
    AIRateLimitError,
    AIReviewClient,
    build_user_message,
)
from app.core.config import AIGatewayConfig


def _config(api_key="test-key"):
    return AIGatewayConfig(
        api_key=api_key,
        url="https://ai.test/v1/chat/completions",
        model="test-model",
        timeout_sec=5,
    )


def _client(handler, api_key="test-key"):
    return AIReviewClient(_config(api_key), transport=httpx.MockTransport(handler))


async def _review(client):
    return await client.review(
        title="Coral bleaching thresholds",
        abstract="We measured bleaching onset across 12 reefs.",
        keywords="coral, bleaching",
        manuscript_type="research-article",
        authors="M. Reef",
    )


def test_user_message_defaults_cover_letter():
    msg = build_user_message(
        title="T", abstract="A", keywords="K", manuscript_type="review", authors="X"
    )
    assert "**Title:** T" in msg
    assert "No cover letter provided." in msg


@pytest.mark.asyncio
async def test_review_returns_model_text_and_sends_prompt():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"choices": [{"message": {"content": "✅ Title Quality: clear"}}]}
        )

    text = await _review(_client(handler))

    assert text == "✅ Title Quality: clear"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["messages"][0]["role"] == "system"
    assert "AI Chief Editor" in seen["body"]["messages"][0]["content"]
    assert "Coral bleaching thresholds" in seen["body"]["messages"][1]["content"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error_type,code",
    [
        (429, AIRateLimitError, 429),
        (402, AICreditsExhaustedError, 402),
        (503, AIGatewayError, 500),
    ],
)
async def test_gateway_errors_are_mapped(status, error_type, code):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": "nope"})

    with pytest.raises(error_type) as exc:
        await _review(_client(handler))
    assert exc.value.status_code == code


@pytest.mark.asyncio
async def test_empty_content_uses_fallback():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]})

    assert await _review(_client(handler)) == FALLBACK_REVIEW


@pytest.mark.asyncio
async def test_network_error_and_missing_key():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AIGatewayError):
        await _review(_client(handler))

    def never_called(request: httpx.Request) -> httpx.Response:
        raise AssertionError("gateway should not be called without a key")

    with pytest.raises(AIGatewayError):
        await _review(_client(never_called, api_key=None))
