"""In-memory stand-ins for repositories, sessions, model backends and sockets."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from itertools import count
from uuid import UUID, uuid4

from app.core.security import Identity, create_identity_token
from app.domain.enums import (
    OPEN_STATUSES,
    ConversationStatus,
    IdentityRole,
    MessageSender,
)
from app.infra.llm.client import ChatMessage
from app.infra.llm.errors import TextGenerationError

TEST_TOKEN_SECRET = "unit-test-token-secret"
PRIMARY_MODEL = "primary/model"
FALLBACK_MODEL = "fallback/model"


class DummySession:
    def __init__(self) -> None:
        self.commits = 0

    async def commit(self) -> None:
        self.commits += 1

    async def refresh(self, _: object) -> None:
        return None


@dataclass(slots=True)
class FakeConversation:
    id: UUID
    customer_id: str
    status: ConversationStatus = ConversationStatus.ACTIVE
    sentiment_score: int | None = None
    assigned_operator_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True)
class FakeMessage:
    id: int
    conversation_id: UUID
    sender: MessageSender
    content: str
    model_used: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class FakeConversationRepository:
    def __init__(self, lost_inserts: int = 0) -> None:
        self.conversations: dict[UUID, FakeConversation] = {}
        # Inserts that lose to a concurrent writer, like the unique index would.
        self.lost_inserts = lost_inserts

    def add(self, conversation: FakeConversation) -> FakeConversation:
        self.conversations[conversation.id] = conversation
        return conversation

    async def get_by_id(self, conversation_id: UUID) -> FakeConversation | None:
        return self.conversations.get(conversation_id)

    async def get_by_id_for_update(
        self, conversation_id: UUID
    ) -> FakeConversation | None:
        return self.conversations.get(conversation_id)

    async def get_open_by_customer(self, customer_id: str) -> FakeConversation | None:
        # Yield like a real query so concurrent callers interleave.
        await asyncio.sleep(0)
        for conversation in self.conversations.values():
            if (
                conversation.customer_id == customer_id
                and conversation.status in OPEN_STATUSES
            ):
                return conversation
        return None

    async def create_open(self, customer_id: str) -> FakeConversation | None:
        await asyncio.sleep(0)
        if self.lost_inserts > 0:
            self.lost_inserts -= 1
            self.add(FakeConversation(id=uuid4(), customer_id=customer_id))
            return None
        return self.add(FakeConversation(id=uuid4(), customer_id=customer_id))

    async def touch(self, conversation: FakeConversation) -> None:
        conversation.updated_at = datetime.now(UTC)

    async def list_open(self, limit: int = 200) -> list[FakeConversation]:
        candidates = [
            conversation
            for conversation in self.conversations.values()
            if conversation.status in OPEN_STATUSES
        ]
        return sorted(candidates, key=lambda item: item.updated_at, reverse=True)[:limit]

    async def list_needing_attention(
        self, threshold: int = 2, limit: int = 200
    ) -> list[FakeConversation]:
        candidates = [
            conversation
            for conversation in self.conversations.values()
            if conversation.status == ConversationStatus.PENDING_HUMAN
            or (
                conversation.sentiment_score is not None
                and conversation.sentiment_score <= threshold
            )
        ]
        return sorted(
            candidates,
            key=lambda item: (item.sentiment_score is None, item.sentiment_score or 0),
        )[:limit]


class FakeMessageRepository:
    def __init__(self) -> None:
        self.messages: list[FakeMessage] = []
        self._ids = count(1)

    async def create(
        self,
        conversation_id: UUID,
        sender: MessageSender,
        content: str,
        model_used: str | None = None,
    ) -> FakeMessage:
        message = FakeMessage(
            id=next(self._ids),
            conversation_id=conversation_id,
            sender=sender,
            content=content,
            model_used=model_used,
        )
        self.messages.append(message)
        return message

    async def list_by_conversation(
        self, conversation_id: UUID, limit: int | None = None
    ) -> list[FakeMessage]:
        ordered = sorted(
            (
                message
                for message in self.messages
                if message.conversation_id == conversation_id
            ),
            key=lambda message: (message.created_at, message.id),
        )
        if limit is not None:
            return ordered[-limit:]
        return ordered

    async def latest_by_conversations(
        self, conversation_ids: list[UUID]
    ) -> dict[UUID, FakeMessage]:
        latest: dict[UUID, FakeMessage] = {}
        for conversation_id in conversation_ids:
            ordered = await self.list_by_conversation(conversation_id)
            if ordered:
                latest[conversation_id] = ordered[-1]
        return latest


class StubTextClient:
    """Scripted text-generation backend keyed by model name."""

    def __init__(self, outcomes: dict[str, list[str | Exception]] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.calls: list[tuple[str, list[ChatMessage]]] = []

    async def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls.append((model, list(messages)))
        script = self.outcomes.get(model)
        outcome: str | Exception = script.pop(0) if script else f"reply from {model}"
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def models_called(self) -> list[str]:
        return [model for model, _ in self.calls]


class FakeWebSocket:
    def __init__(self) -> None:
        self.accepted = False
        self.sent: list[dict] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]

    def frames(self, event: str) -> list[dict]:
        return [frame["data"] for frame in self.sent if frame["event"] == event]


class RecordingPublisher:
    def __init__(self) -> None:
        self.published: list[tuple[list[str], str, dict]] = []

    async def publish(self, rooms, event, payload) -> None:
        self.published.append((list(rooms), event.value, dict(payload)))

    def events(self) -> list[str]:
        return [event for _, event, _ in self.published]


def upstream_error(model: str, status_code: int) -> TextGenerationError:
    return TextGenerationError(model, f"HTTP {status_code}", status_code=status_code)


def make_token(user_id: str, role: IdentityRole = IdentityRole.CUSTOMER) -> str:
    token, _ = create_identity_token(
        identity=Identity(user_id=user_id, role=role),
        secret=TEST_TOKEN_SECRET,
        ttl_minutes=5,
    )
    return token
