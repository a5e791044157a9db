import json

import httpx
import pytest

from app.infra.llm.client import HuggingFaceChatClient
from app.infra.llm.errors import TextGenerationError, TextGenerationTimeout

MESSAGES = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "Xin chào"},
]


def build_client(handler) -> HuggingFaceChatClient:
    return HuggingFaceChatClient(
        api_key="hf-test-key",
        base_url="https://llm.test/v1/",
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_complete_posts_chat_request_and_returns_content() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"choices": [{"message": {"role": "assistant", "content": "  Chào bạn!  "}}]},
        )

    content = await build_client(handler).complete(
        "org/model", MESSAGES, max_tokens=500, temperature=0.7
    )

    assert content == "Chào bạn!"
    request = seen[0]
    assert str(request.url) == "https://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer hf-test-key"
    body = json.loads(request.content)
    assert body == {
        "model": "org/model",
        "messages": MESSAGES,
        "max_tokens": 500,
        "temperature": 0.7,
    }


@pytest.mark.asyncio
async def test_complete_without_choices_returns_empty_string() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    content = await build_client(handler).complete(
        "org/model", MESSAGES, max_tokens=10, temperature=0
    )

    assert content == ""


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[1, 2], "choices", 3])
async def test_non_object_body_is_generation_error(body) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=body)

    with pytest.raises(TextGenerationError) as exc_info:
        await build_client(handler).complete(
            "org/model", MESSAGES, max_tokens=10, temperature=0
        )

    assert exc_info.value.status_code == 200
    assert not exc_info.value.recoverable


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status_code", "recoverable"),
    [(403, True), (404, True), (429, True), (503, True), (400, False), (500, False)],
)
async def test_error_status_maps_to_generation_error(
    status_code: int, recoverable: bool
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text="upstream says no")

    with pytest.raises(TextGenerationError) as exc_info:
        await build_client(handler).complete(
            "org/model", MESSAGES, max_tokens=10, temperature=0
        )

    assert exc_info.value.status_code == status_code
    assert exc_info.value.recoverable is recoverable
    assert exc_info.value.model == "org/model"


@pytest.mark.asyncio
async def test_timeout_is_recoverable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TextGenerationTimeout) as exc_info:
        await build_client(handler).complete(
            "org/model", MESSAGES, max_tokens=10, temperature=0
        )

    assert exc_info.value.recoverable


@pytest.mark.asyncio
async def test_transport_error_is_not_recoverable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TextGenerationError) as exc_info:
        await build_client(handler).complete(
            "org/model", MESSAGES, max_tokens=10, temperature=0
        )

    assert exc_info.value.status_code is None
    assert not exc_info.value.recoverable
