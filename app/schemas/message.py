from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from app.domain.enums import MessageSender
from app.schemas.common import ApiModel


class SendMessageRequest(ApiModel):
    # Emptiness is checked by the ledger so it maps to a 400.
    message: str = Field(default="", max_length=4000)


class SendFaqRequest(ApiModel):
    question: str = Field(default="", max_length=4000)
    answer: str = Field(default="", max_length=4000)


class MessageResponse(ApiModel):
    id: int
    conversation_id: UUID
    sender: MessageSender
    content: str
    model_used: str | None = None
    created_at: datetime


def message_payload(message: Any) -> dict[str, Any]:
    return MessageResponse.model_validate(message).model_dump(mode="json", by_alias=True)
