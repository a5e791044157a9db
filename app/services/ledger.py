from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.enums import MessageSender
from app.infra.db.models import Message
from app.infra.db.repositories import MessageRepository
from app.services.errors import ValidationError


class MessageLedger:
    """Append-only, per-conversation ordered log of messages.

    Messages are ordered by ``created_at`` and then by their insertion
    sequence (the autoincrement id). Nothing here updates or deletes a row.
    """

    def __init__(
        self,
        session: AsyncSession,
        messages: MessageRepository | None = None,
    ) -> None:
        self.session = session
        self.messages = messages or MessageRepository(session)

    async def append(
        self,
        conversation_id: UUID,
        content: str,
        sender: MessageSender,
        model_used: str | None = None,
    ) -> Message:
        return await self.messages.create(
            conversation_id=conversation_id,
            sender=sender,
            content=self.clean_content(content),
            model_used=model_used,
        )

    @staticmethod
    def clean_content(content: str | None) -> str:
        cleaned_content = (content or "").strip()
        if not cleaned_content:
            raise ValidationError("message", "Message content cannot be empty.")
        return cleaned_content

    async def list(self, conversation_id: UUID, limit: int | None = None) -> list[Message]:
        return await self.messages.list_by_conversation(conversation_id, limit=limit)

    async def latest(self, conversation_ids: list[UUID]) -> dict[UUID, Message]:
        return await self.messages.latest_by_conversations(conversation_ids)
