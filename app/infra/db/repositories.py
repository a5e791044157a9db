import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.enums import OPEN_STATUSES, ConversationStatus, MessageSender
from app.infra.db.models import Conversation, Message

logger = logging.getLogger(__name__)


class ConversationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return await self.session.get(Conversation, conversation_id)

    async def get_by_id_for_update(self, conversation_id: UUID) -> Conversation | None:
        stmt: Select[tuple[Conversation]] = (
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_open_by_customer(self, customer_id: str) -> Conversation | None:
        stmt: Select[tuple[Conversation]] = (
            select(Conversation)
            .where(
                Conversation.customer_id == customer_id,
                Conversation.status.in_(OPEN_STATUSES),
            )
            .order_by(Conversation.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_open(self, customer_id: str) -> Conversation | None:
        """Insert a new ACTIVE conversation.

        Returns ``None`` when the open-conversation unique index rejects the
        row because another writer created one first.
        """
        conversation = Conversation(
            customer_id=customer_id, status=ConversationStatus.ACTIVE
        )
        try:
            async with self.session.begin_nested():
                self.session.add(conversation)
                await self.session.flush()
        except IntegrityError:
            logger.info(
                "Open conversation for customer %s created concurrently, re-reading",
                customer_id,
            )
            return None
        return conversation

    async def touch(self, conversation: Conversation) -> None:
        conversation.updated_at = datetime.now(UTC)
        await self.session.flush()

    async def list_open(self, limit: int = 200) -> list[Conversation]:
        stmt: Select[tuple[Conversation]] = (
            select(Conversation)
            .where(Conversation.status.in_(OPEN_STATUSES))
            .order_by(Conversation.updated_at.desc(), Conversation.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_needing_attention(
        self, threshold: int = 2, limit: int = 200
    ) -> list[Conversation]:
        stmt: Select[tuple[Conversation]] = (
            select(Conversation)
            .where(
                or_(
                    Conversation.status == ConversationStatus.PENDING_HUMAN,
                    and_(
                        Conversation.sentiment_score.is_not(None),
                        Conversation.sentiment_score <= threshold,
                    ),
                ),
            )
            .order_by(
                Conversation.sentiment_score.asc().nulls_last(),
                Conversation.updated_at.desc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class MessageRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        conversation_id: UUID,
        sender: MessageSender,
        content: str,
        model_used: str | None = None,
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender=sender,
            content=content,
            model_used=model_used,
        )
        self.session.add(message)
        await self.session.flush()
        await self.session.refresh(message)
        return message

    async def list_by_conversation(
        self, conversation_id: UUID, limit: int | None = None
    ) -> list[Message]:
        if limit is None:
            stmt: Select[tuple[Message]] = (
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc(), Message.id.asc())
            )
            result = await self.session.execute(stmt)
            return list(result.scalars().all())

        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))

    async def latest_by_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, Message]:
        if not conversation_ids:
            return {}

        ranked = (
            select(
                Message.id.label("message_id"),
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("position"),
            )
            .where(Message.conversation_id.in_(conversation_ids))
            .subquery()
        )
        stmt: Select[tuple[Message]] = select(Message).join(
            ranked,
            and_(ranked.c.message_id == Message.id, ranked.c.position == 1),
        )
        result = await self.session.execute(stmt)
        return {message.conversation_id: message for message in result.scalars().all()}
