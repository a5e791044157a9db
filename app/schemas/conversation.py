from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.domain.enums import ConversationStatus
from app.schemas.common import ApiModel
from app.schemas.message import MessageResponse


class ConversationResponse(ApiModel):
    id: UUID
    customer_id: str
    status: ConversationStatus
    sentiment_score: int | None
    assigned_operator_id: str | None
    created_at: datetime
    updated_at: datetime


class ConversationSummaryResponse(ConversationResponse):
    last_message: MessageResponse | None = None


class CustomerExchangeResponse(ApiModel):
    conversation_id: UUID
    message: MessageResponse
    should_handover: bool


class FaqExchangeResponse(ApiModel):
    conversation_id: UUID
    message: MessageResponse


class ProductDescriptionRequest(ApiModel):
    name: str
    tags: list[str] = Field(default_factory=list)


class ProductDescriptionResponse(ApiModel):
    description: str
