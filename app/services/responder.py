import logging
from collections.abc import Sequence
from dataclasses import dataclass

from app.core.config import Settings, get_settings
from app.infra.llm.client import ChatMessage, HuggingFaceChatClient, TextGenerationClient
from app.infra.llm.errors import TextGenerationError
from app.services import sentiment
from app.services.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

EMPTY_COMPLETION_TEXT = "Xin lỗi, mình không thể trả lời lúc này."


@dataclass(slots=True)
class AssistantReply:
    content: str
    model_used: str
    sentiment: int


def build_system_prompt(assistant_name: str, store_name: str) -> str:
    return (
        f"You are {assistant_name}, the customer-support assistant of {store_name}, "
        "an online store for eco-friendly stationery and office supplies.\n"
        "Tone: gentle, warm and concise.\n"
        "Task: advise on products, answer questions about orders, shipping and "
        "returns, and help customers place orders.\n"
        "Rules: always answer in Vietnamese, keep replies to a few short "
        "paragraphs, use plain text with an occasional fitting emoji, and never "
        "invent prices, stock levels or order details you were not given."
    )


class Responder:
    """Produces assistant replies with primary/fallback model failover.

    The responder never writes to the ledger; callers persist the reply.
    """

    def __init__(
        self,
        client: TextGenerationClient,
        primary_model: str,
        fallback_model: str,
        *,
        max_tokens: int = 500,
        temperature: float = 0.7,
        system_prompt: str | None = None,
        sentiment_window: int = sentiment.DEFAULT_WINDOW,
    ) -> None:
        self.client = client
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.system_prompt = system_prompt or build_system_prompt(
            "Eco-Assistant", "EcoPlanner"
        )
        self.sentiment_window = sentiment_window

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Responder":
        settings = settings or get_settings()
        client = HuggingFaceChatClient(
            api_key=settings.hf_api_key,
            base_url=settings.llm_base_url,
            timeout_seconds=settings.llm_timeout_seconds,
        )
        return cls(
            client,
            primary_model=settings.llm_primary_model,
            fallback_model=settings.llm_fallback_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            system_prompt=build_system_prompt(
                settings.assistant_name, settings.store_name
            ),
        )

    async def reply(
        self,
        history: Sequence[ChatMessage],
        product_context: str | None = None,
    ) -> AssistantReply:
        system_content = self.system_prompt
        if product_context and product_context.strip():
            system_content += f"\n\nProducts:\n{product_context.strip()}"
        messages: list[ChatMessage] = [
            {"role": "system", "content": system_content},
            *history,
        ]

        try:
            content = await self._call(self.primary_model, messages)
            model_used = self.primary_model
        except TextGenerationError as primary_error:
            if not primary_error.recoverable:
                logger.warning(
                    "Primary model %s failed with a non-recoverable error: %s",
                    self.primary_model,
                    primary_error.detail,
                )
                raise

            logger.warning(
                "Primary model %s failed (%s), retrying with fallback %s",
                self.primary_model,
                primary_error.detail,
                self.fallback_model,
            )
            try:
                content = await self._call(self.fallback_model, messages)
            except TextGenerationError as fallback_error:
                logger.error(
                    "Fallback model %s failed: %s",
                    self.fallback_model,
                    fallback_error.detail,
                )
                raise ServiceUnavailableError() from None
            model_used = self.fallback_model

        customer_texts = [
            message["content"] for message in history if message["role"] == "user"
        ]
        return AssistantReply(
            content=content,
            model_used=model_used,
            sentiment=sentiment.score(customer_texts, window=self.sentiment_window),
        )

    async def describe_product(self, name: str, tags: Sequence[str]) -> str:
        prompt = (
            f'Write a short (2-3 sentence) Vietnamese product description for "{name}" '
            f"with these traits: {', '.join(tags)}. "
            "Emphasise how environmentally friendly it is."
        )
        return await self._call(
            self.fallback_model, [{"role": "user", "content": prompt}]
        )

    async def _call(self, model: str, messages: Sequence[ChatMessage]) -> str:
        content = await self.client.complete(
            model,
            messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return content or EMPTY_COMPLETION_TEXT
