from dataclasses import dataclass

import pytest

from app.core.locks import KeyedLock
from app.services.conversation_service import ConversationService
from app.services.responder import Responder
from tests.unit.fakes import (
    FALLBACK_MODEL,
    PRIMARY_MODEL,
    DummySession,
    FakeConversationRepository,
    FakeMessageRepository,
    RecordingPublisher,
    StubTextClient,
)


@dataclass(slots=True)
class EngineState:
    session: DummySession
    conversations: FakeConversationRepository
    messages: FakeMessageRepository
    client: StubTextClient
    responder: Responder
    publisher: RecordingPublisher
    locks: KeyedLock

    def service(self, realtime=None) -> ConversationService:
        return ConversationService(
            session=self.session,
            responder=self.responder,
            conversations=self.conversations,
            messages=self.messages,
            realtime=realtime or self.publisher,
            locks=self.locks,
        )


@pytest.fixture
def engine_state() -> EngineState:
    client = StubTextClient()
    return EngineState(
        session=DummySession(),
        conversations=FakeConversationRepository(),
        messages=FakeMessageRepository(),
        client=client,
        responder=Responder(client, PRIMARY_MODEL, FALLBACK_MODEL),
        publisher=RecordingPublisher(),
        locks=KeyedLock(),
    )


@pytest.fixture
def service(engine_state: EngineState) -> ConversationService:
    return engine_state.service()
