from collections.abc import Sequence
from typing import Literal, Protocol, TypedDict

import httpx

from app.infra.llm.errors import TextGenerationError, TextGenerationTimeout


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class TextGenerationClient(Protocol):
    async def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str: ...


class HuggingFaceChatClient:
    """Chat completions against the HuggingFace inference router.

    The router speaks the OpenAI chat-completions format, so any compatible
    endpoint can be configured through ``base_url``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://router.huggingface.co/v1",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._timeout = timeout_seconds
        self._transport = transport

    async def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "storefront-support-chat/0.1.0",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        payload = {
            "model": model,
            "messages": [
                {"role": message["role"], "content": message["content"]}
                for message in messages
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        # Short-lived client per call so a stalled connection never leaks.
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise TextGenerationTimeout(model, self._timeout) from exc
        except httpx.HTTPError as exc:
            raise TextGenerationError(model, f"transport error: {exc!r}") from exc

        if resp.status_code >= 400:
            raise TextGenerationError(
                model,
                f"HTTP {resp.status_code}: {resp.text[:500]}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise TextGenerationError(
                model, "response body is not JSON", status_code=resp.status_code
            ) from exc

        if not isinstance(data, dict):
            raise TextGenerationError(
                model, "response body is not a JSON object", status_code=resp.status_code
            )

        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return (message.get("content") or "").strip()
