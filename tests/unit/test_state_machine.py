import pytest

from app.domain.enums import ConversationStatus, TransitionAction
from app.domain.exceptions import InvalidConversationTransition
from app.domain.state_machine import ConversationLifecycle


def test_low_sentiment_escalates_active_conversation() -> None:
    next_state = ConversationLifecycle.transition(
        ConversationStatus.ACTIVE, TransitionAction.LOW_SENTIMENT
    )
    assert next_state == ConversationStatus.PENDING_HUMAN


def test_stable_sentiment_clears_pending_human() -> None:
    next_state = ConversationLifecycle.transition(
        ConversationStatus.PENDING_HUMAN, TransitionAction.STABLE_SENTIMENT
    )
    assert next_state == ConversationStatus.ACTIVE


def test_assign_operator_from_pending_human_becomes_active() -> None:
    next_state = ConversationLifecycle.transition(
        ConversationStatus.PENDING_HUMAN, TransitionAction.ASSIGN_OPERATOR
    )
    assert next_state == ConversationStatus.ACTIVE


def test_assign_operator_reopens_resolved_conversation() -> None:
    next_state = ConversationLifecycle.transition(
        ConversationStatus.RESOLVED, TransitionAction.ASSIGN_OPERATOR
    )
    assert next_state == ConversationStatus.ACTIVE


@pytest.mark.parametrize(
    "current", [ConversationStatus.ACTIVE, ConversationStatus.PENDING_HUMAN]
)
def test_resolve_from_open_states(current: ConversationStatus) -> None:
    next_state = ConversationLifecycle.transition(current, TransitionAction.RESOLVE)
    assert next_state == ConversationStatus.RESOLVED


def test_idempotent_resolve() -> None:
    next_state = ConversationLifecycle.transition(
        ConversationStatus.RESOLVED, TransitionAction.RESOLVE
    )
    assert next_state == ConversationStatus.RESOLVED


@pytest.mark.parametrize(
    "action", [TransitionAction.LOW_SENTIMENT, TransitionAction.STABLE_SENTIMENT]
)
def test_sentiment_cannot_move_resolved_conversation(action: TransitionAction) -> None:
    with pytest.raises(InvalidConversationTransition):
        ConversationLifecycle.transition(ConversationStatus.RESOLVED, action)


def test_sentiment_action_uses_inclusive_threshold() -> None:
    assert ConversationLifecycle.sentiment_action(1) == TransitionAction.LOW_SENTIMENT
    assert ConversationLifecycle.sentiment_action(2) == TransitionAction.LOW_SENTIMENT
    assert ConversationLifecycle.sentiment_action(3) == TransitionAction.STABLE_SENTIMENT
    assert (
        ConversationLifecycle.sentiment_action(3, threshold=3)
        == TransitionAction.LOW_SENTIMENT
    )


def test_resolved_is_read_only() -> None:
    assert ConversationLifecycle.is_read_only(ConversationStatus.RESOLVED)
    assert not ConversationLifecycle.is_read_only(ConversationStatus.ACTIVE)
    assert ConversationLifecycle.is_open(ConversationStatus.PENDING_HUMAN)
    assert not ConversationLifecycle.is_open(ConversationStatus.RESOLVED)
