from app.domain.enums import OPEN_STATUSES, ConversationStatus, TransitionAction
from app.domain.exceptions import InvalidConversationTransition


class ConversationLifecycle:
    """State machine for conversation lifecycle: active <-> pending_human -> resolved.

    Resolved conversations only leave the terminal state through an explicit
    operator assignment, which reopens them.
    """

    _allowed_transitions: dict[tuple[ConversationStatus, TransitionAction], ConversationStatus] = {
        (ConversationStatus.ACTIVE, TransitionAction.LOW_SENTIMENT): ConversationStatus.PENDING_HUMAN,
        (ConversationStatus.PENDING_HUMAN, TransitionAction.LOW_SENTIMENT): ConversationStatus.PENDING_HUMAN,
        (ConversationStatus.ACTIVE, TransitionAction.STABLE_SENTIMENT): ConversationStatus.ACTIVE,
        (ConversationStatus.PENDING_HUMAN, TransitionAction.STABLE_SENTIMENT): ConversationStatus.ACTIVE,
        (ConversationStatus.ACTIVE, TransitionAction.ASSIGN_OPERATOR): ConversationStatus.ACTIVE,
        (ConversationStatus.PENDING_HUMAN, TransitionAction.ASSIGN_OPERATOR): ConversationStatus.ACTIVE,
        (ConversationStatus.RESOLVED, TransitionAction.ASSIGN_OPERATOR): ConversationStatus.ACTIVE,
        (ConversationStatus.ACTIVE, TransitionAction.RESOLVE): ConversationStatus.RESOLVED,
        (ConversationStatus.PENDING_HUMAN, TransitionAction.RESOLVE): ConversationStatus.RESOLVED,
    }

    @classmethod
    def transition(cls, current: ConversationStatus, action: TransitionAction) -> ConversationStatus:
        # Idempotent semantics for repeated UI actions.
        if current == ConversationStatus.RESOLVED and action == TransitionAction.RESOLVE:
            return ConversationStatus.RESOLVED

        next_state = cls._allowed_transitions.get((current, action))
        if not next_state:
            raise InvalidConversationTransition(current=current, action=action)
        return next_state

    @staticmethod
    def sentiment_action(sentiment: int, threshold: int = 2) -> TransitionAction:
        if sentiment <= threshold:
            return TransitionAction.LOW_SENTIMENT
        return TransitionAction.STABLE_SENTIMENT

    @staticmethod
    def is_open(status: ConversationStatus) -> bool:
        return status in OPEN_STATUSES

    @staticmethod
    def is_read_only(status: ConversationStatus) -> bool:
        return status == ConversationStatus.RESOLVED
