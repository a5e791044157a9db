"""Inbound websocket frames, validated before dispatch."""

from typing import Annotated, Literal
from uuid import UUID

from pydantic import Field, TypeAdapter

from app.schemas.common import ApiModel


class SendMessagePayload(ApiModel):
    message: str = Field(min_length=1, max_length=4000)


class AdminMessagePayload(ApiModel):
    conversation_id: UUID
    message: str = Field(min_length=1, max_length=4000)


class SendMessageFrame(ApiModel):
    event: Literal["send_message"]
    data: SendMessagePayload


class AdminMessageFrame(ApiModel):
    event: Literal["admin_message"]
    data: AdminMessagePayload


class PingFrame(ApiModel):
    event: Literal["ping"]


ClientFrame = Annotated[
    SendMessageFrame | AdminMessageFrame | PingFrame,
    Field(discriminator="event"),
]

client_frame_adapter: TypeAdapter[ClientFrame] = TypeAdapter(ClientFrame)
