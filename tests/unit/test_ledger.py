from uuid import uuid4

import pytest

from app.domain.enums import MessageSender
from app.services.errors import ValidationError
from app.services.ledger import MessageLedger
from tests.unit.fakes import DummySession, FakeMessageRepository


def build_ledger() -> tuple[MessageLedger, FakeMessageRepository]:
    messages = FakeMessageRepository()
    return MessageLedger(DummySession(), messages), messages


@pytest.mark.asyncio
async def test_append_strips_content_and_records_model() -> None:
    ledger, _ = build_ledger()
    conversation_id = uuid4()

    message = await ledger.append(
        conversation_id, "  Dạ có ạ  ", MessageSender.ASSISTANT, model_used="org/model"
    )

    assert message.content == "Dạ có ạ"
    assert message.sender == MessageSender.ASSISTANT
    assert message.model_used == "org/model"


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
async def test_append_rejects_empty_content(content: str) -> None:
    ledger, messages = build_ledger()

    with pytest.raises(ValidationError) as exc_info:
        await ledger.append(uuid4(), content, MessageSender.CUSTOMER)

    assert exc_info.value.field == "message"
    assert messages.messages == []


@pytest.mark.asyncio
async def test_list_is_ordered_and_scoped_to_conversation() -> None:
    ledger, _ = build_ledger()
    conversation_id = uuid4()
    other_id = uuid4()

    await ledger.append(conversation_id, "one", MessageSender.CUSTOMER)
    await ledger.append(other_id, "elsewhere", MessageSender.CUSTOMER)
    await ledger.append(conversation_id, "two", MessageSender.ASSISTANT)
    await ledger.append(conversation_id, "three", MessageSender.OPERATOR)

    history = await ledger.list(conversation_id)

    assert [message.content for message in history] == ["one", "two", "three"]
    assert all(
        earlier.created_at <= later.created_at
        for earlier, later in zip(history, history[1:])
    )


@pytest.mark.asyncio
async def test_list_with_limit_keeps_most_recent_in_order() -> None:
    ledger, _ = build_ledger()
    conversation_id = uuid4()
    for index in range(5):
        await ledger.append(conversation_id, f"message {index}", MessageSender.CUSTOMER)

    history = await ledger.list(conversation_id, limit=2)

    assert [message.content for message in history] == ["message 3", "message 4"]


@pytest.mark.asyncio
async def test_latest_returns_last_message_per_conversation() -> None:
    ledger, _ = build_ledger()
    first, second, empty = uuid4(), uuid4(), uuid4()
    await ledger.append(first, "a", MessageSender.CUSTOMER)
    await ledger.append(first, "b", MessageSender.ASSISTANT)
    await ledger.append(second, "c", MessageSender.CUSTOMER)

    latest = await ledger.latest([first, second, empty])

    assert latest[first].content == "b"
    assert latest[second].content == "c"
    assert empty not in latest
