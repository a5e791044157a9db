import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.locks import KeyedLock, customer_locks
from app.core.security import Identity
from app.domain.enums import ConversationStatus, MessageSender, TransitionAction
from app.domain.exceptions import SentimentOutOfRange
from app.domain.state_machine import ConversationLifecycle
from app.infra.db.models import Conversation, Message
from app.infra.db.repositories import ConversationRepository, MessageRepository
from app.infra.llm.client import ChatMessage
from app.infra.realtime.channels import OPERATOR_ROOM, customer_room
from app.infra.realtime.events import DashboardUpdate, RealtimeEvent
from app.infra.realtime.publisher import NoopRealtimePublisher, RealtimePublisher
from app.schemas.message import message_payload
from app.services.errors import (
    ConversationAccessDeniedError,
    ConversationClosedError,
    ConversationConflictError,
    ConversationNotFoundError,
)
from app.services.ledger import MessageLedger
from app.services.responder import Responder
from app.services.sentiment import MAX_SCORE, MIN_SCORE

logger = logging.getLogger(__name__)

# Attempts at the get-or-create read/insert cycle before giving up.
GET_OR_CREATE_ATTEMPTS = 3


@dataclass(slots=True)
class ConversationSummary:
    conversation: Conversation
    last_message: Message | None


@dataclass(slots=True)
class AutomatedReply:
    conversation: Conversation
    message: Message
    should_handover: bool


@dataclass(slots=True)
class CustomerExchange:
    conversation: Conversation
    customer_message: Message
    assistant_message: Message
    should_handover: bool


@dataclass(slots=True)
class FaqExchange:
    conversation: Conversation
    question_message: Message
    answer_message: Message


class ConversationService:
    def __init__(
        self,
        session: AsyncSession,
        responder: Responder | None = None,
        conversations: ConversationRepository | None = None,
        messages: MessageRepository | None = None,
        realtime: RealtimePublisher | None = None,
        locks: KeyedLock | None = None,
        history_limit: int = 20,
        handover_threshold: int = 2,
    ) -> None:
        self.session = session
        self.responder = responder
        self.conversations = conversations or ConversationRepository(session)
        self.ledger = MessageLedger(session, messages)
        self.realtime = realtime or NoopRealtimePublisher()
        self.locks = locks or customer_locks
        self.history_limit = history_limit
        self.handover_threshold = handover_threshold

    async def get_or_create(self, customer_id: str) -> Conversation:
        async with self.locks.hold(customer_id):
            for _ in range(GET_OR_CREATE_ATTEMPTS):
                conversation = await self.conversations.get_open_by_customer(customer_id)
                if conversation is not None:
                    return conversation

                conversation = await self.conversations.create_open(customer_id)
                if conversation is not None:
                    await self.session.commit()
                    logger.info(
                        "Opened conversation %s for customer %s",
                        conversation.id,
                        customer_id,
                    )
                    return conversation

        raise RuntimeError(
            f"Could not resolve an open conversation for customer '{customer_id}'"
        )

    async def record_customer_message(
        self, conversation: Conversation, content: str
    ) -> Message:
        message = await self.ledger.append(
            conversation.id, content, MessageSender.CUSTOMER
        )
        await self.conversations.touch(conversation)
        return message

    async def accept_customer_message(
        self, customer_id: str, content: str
    ) -> tuple[Conversation, Message]:
        content = MessageLedger.clean_content(content)
        conversation = await self.get_or_create(customer_id)
        message = await self.record_customer_message(conversation, content)
        await self.session.commit()
        return conversation, message

    async def generate_reply(
        self,
        conversation_id: UUID,
        product_context: str | None = None,
    ) -> AutomatedReply:
        if self.responder is None:
            raise RuntimeError("ConversationService was built without a responder")

        history = await self.ledger.list(conversation_id, limit=self.history_limit)
        # Release the connection while the model call is in flight.
        await self.session.commit()

        reply = await self.responder.reply(
            [self._to_chat_message(message) for message in history],
            product_context=product_context,
        )
        return await self.apply_automated_reply(
            conversation_id,
            content=reply.content,
            sentiment=reply.sentiment,
            model_used=reply.model_used,
        )

    async def apply_automated_reply(
        self,
        conversation_id: UUID,
        content: str,
        sentiment: int,
        model_used: str | None = None,
    ) -> AutomatedReply:
        if not MIN_SCORE <= sentiment <= MAX_SCORE:
            raise SentimentOutOfRange(sentiment)

        conversation = await self._get_conversation_or_raise(
            conversation_id, for_update=True
        )
        if ConversationLifecycle.is_read_only(conversation.status):
            raise ConversationClosedError(conversation.id)

        message = await self.ledger.append(
            conversation.id,
            content,
            MessageSender.ASSISTANT,
            model_used=model_used,
        )

        conversation.sentiment_score = sentiment
        conversation.status = self._status_after_sentiment(conversation, sentiment)
        await self.conversations.touch(conversation)
        await self.session.commit()

        should_handover = sentiment <= self.handover_threshold
        if should_handover:
            logger.info(
                "Conversation %s needs a human (sentiment=%d)",
                conversation.id,
                sentiment,
            )
        return AutomatedReply(
            conversation=conversation,
            message=message,
            should_handover=should_handover,
        )

    async def announce_reply(self, reply: AutomatedReply) -> None:
        if reply.should_handover:
            await self._safe_publish(
                rooms=[OPERATOR_ROOM],
                event=RealtimeEvent.HANDOVER_REQUEST,
                payload={
                    "conversationId": str(reply.conversation.id),
                    "customerId": reply.conversation.customer_id,
                },
            )
        await self._emit_dashboard_update(DashboardUpdate.NEW_MESSAGE)

    async def send_customer_message(
        self,
        customer_id: str,
        content: str,
        product_context: str | None = None,
    ) -> CustomerExchange:
        conversation, customer_message = await self.accept_customer_message(
            customer_id, content
        )
        reply = await self.generate_reply(
            conversation.id, product_context=product_context
        )
        await self.announce_reply(reply)
        return CustomerExchange(
            conversation=reply.conversation,
            customer_message=customer_message,
            assistant_message=reply.message,
            should_handover=reply.should_handover,
        )

    async def send_faq_answer(
        self, customer_id: str, question: str, answer: str
    ) -> FaqExchange:
        question = MessageLedger.clean_content(question)
        answer = MessageLedger.clean_content(answer)
        conversation = await self.get_or_create(customer_id)
        question_message = await self.ledger.append(
            conversation.id, question, MessageSender.CUSTOMER
        )
        answer_message = await self.ledger.append(
            conversation.id, answer, MessageSender.ASSISTANT
        )
        await self.conversations.touch(conversation)
        await self.session.commit()
        return FaqExchange(
            conversation=conversation,
            question_message=question_message,
            answer_message=answer_message,
        )

    async def assign(self, conversation_id: UUID, operator_id: str) -> Conversation:
        conversation = await self._get_conversation_or_raise(
            conversation_id, for_update=True
        )

        if ConversationLifecycle.is_read_only(conversation.status):
            # Reopening must not create a second open conversation.
            async with self.locks.hold(conversation.customer_id):
                open_conversation = await self.conversations.get_open_by_customer(
                    conversation.customer_id
                )
                if open_conversation is not None and open_conversation.id != conversation.id:
                    raise ConversationConflictError(conversation.id, open_conversation.id)
                self._apply_assignment(conversation, operator_id)
                await self.conversations.touch(conversation)
                await self.session.commit()
            logger.info(
                "Conversation %s reopened by operator %s", conversation.id, operator_id
            )
        else:
            self._apply_assignment(conversation, operator_id)
            await self.conversations.touch(conversation)
            await self.session.commit()

        await self._emit_dashboard_update(DashboardUpdate.ASSIGNED)
        return conversation

    async def resolve(self, conversation_id: UUID, operator_id: str) -> Conversation:
        conversation = await self._get_conversation_or_raise(
            conversation_id, for_update=True
        )
        conversation.status = ConversationLifecycle.transition(
            conversation.status, TransitionAction.RESOLVE
        )
        conversation.assigned_operator_id = operator_id
        await self.conversations.touch(conversation)
        await self.session.commit()

        await self._emit_dashboard_update(DashboardUpdate.RESOLVED)
        return conversation

    async def record_operator_message(
        self,
        conversation_id: UUID,
        operator_id: str,
        content: str,
    ) -> Message:
        # Operators may still write after resolution, e.g. closing remarks.
        conversation = await self._get_conversation_or_raise(conversation_id)
        message = await self.ledger.append(
            conversation.id, content, MessageSender.OPERATOR
        )
        await self.conversations.touch(conversation)
        await self.session.commit()
        logger.debug(
            "Operator %s replied in conversation %s", operator_id, conversation.id
        )

        await self._safe_publish(
            rooms=[OPERATOR_ROOM, customer_room(conversation.customer_id)],
            event=RealtimeEvent.ADMIN_MESSAGE_SENT,
            payload={
                "conversationId": str(conversation.id),
                "message": message_payload(message),
            },
        )
        return message

    async def get_history(
        self, conversation_id: UUID, identity: Identity
    ) -> list[Message]:
        conversation = await self._get_conversation_or_raise(conversation_id)
        if not identity.is_operator and conversation.customer_id != identity.user_id:
            raise ConversationAccessDeniedError(conversation_id)
        return await self.ledger.list(conversation.id)

    async def list_open(self) -> list[ConversationSummary]:
        conversations = await self.conversations.list_open()
        return await self._summarize(conversations)

    async def list_needing_attention(self) -> list[ConversationSummary]:
        conversations = await self.conversations.list_needing_attention(
            threshold=self.handover_threshold
        )
        return await self._summarize(conversations)

    async def _summarize(
        self, conversations: list[Conversation]
    ) -> list[ConversationSummary]:
        latest = await self.ledger.latest([conversation.id for conversation in conversations])
        return [
            ConversationSummary(
                conversation=conversation,
                last_message=latest.get(conversation.id),
            )
            for conversation in conversations
        ]

    async def _get_conversation_or_raise(
        self,
        conversation_id: UUID,
        *,
        for_update: bool = False,
    ) -> Conversation:
        if for_update:
            conversation = await self.conversations.get_by_id_for_update(conversation_id)
        else:
            conversation = await self.conversations.get_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _status_after_sentiment(
        self, conversation: Conversation, sentiment: int
    ) -> ConversationStatus:
        action = ConversationLifecycle.sentiment_action(
            sentiment, threshold=self.handover_threshold
        )
        # With an operator on the case, only the operator clears a handover.
        if (
            action == TransitionAction.STABLE_SENTIMENT
            and conversation.status == ConversationStatus.PENDING_HUMAN
            and conversation.assigned_operator_id is not None
        ):
            return ConversationStatus.PENDING_HUMAN
        return ConversationLifecycle.transition(conversation.status, action)

    @staticmethod
    def _apply_assignment(conversation: Conversation, operator_id: str) -> None:
        conversation.status = ConversationLifecycle.transition(
            conversation.status, TransitionAction.ASSIGN_OPERATOR
        )
        conversation.assigned_operator_id = operator_id

    @staticmethod
    def _to_chat_message(message: Message) -> ChatMessage:
        role = "user" if message.sender == MessageSender.CUSTOMER else "assistant"
        return {"role": role, "content": message.content}

    async def _emit_dashboard_update(self, update: DashboardUpdate) -> None:
        await self._safe_publish(
            rooms=[OPERATOR_ROOM],
            event=RealtimeEvent.UPDATE_DASHBOARD,
            payload={"type": update.value},
        )

    async def _safe_publish(
        self,
        rooms: list[str],
        event: RealtimeEvent,
        payload: dict[str, Any],
    ) -> None:
        try:
            await self.realtime.publish(rooms, event, payload)
        except Exception:
            logger.exception("Failed to publish realtime event %s", event.value)
