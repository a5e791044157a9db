"""Outbound text-generation adapters."""

from app.infra.llm.client import ChatMessage, HuggingFaceChatClient, TextGenerationClient
from app.infra.llm.errors import TextGenerationError, TextGenerationTimeout

__all__ = [
    "ChatMessage",
    "HuggingFaceChatClient",
    "TextGenerationClient",
    "TextGenerationError",
    "TextGenerationTimeout",
]
