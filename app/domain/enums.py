from enum import Enum


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    PENDING_HUMAN = "pending_human"
    RESOLVED = "resolved"


class MessageSender(str, Enum):
    CUSTOMER = "customer"
    ASSISTANT = "assistant"
    OPERATOR = "operator"


class IdentityRole(str, Enum):
    CUSTOMER = "customer"
    SUPPORT = "support"
    ADMIN = "admin"


class TransitionAction(str, Enum):
    LOW_SENTIMENT = "low_sentiment"
    STABLE_SENTIMENT = "stable_sentiment"
    ASSIGN_OPERATOR = "assign_operator"
    RESOLVE = "resolve"


OPEN_STATUSES: tuple[ConversationStatus, ...] = (
    ConversationStatus.ACTIVE,
    ConversationStatus.PENDING_HUMAN,
)
OPERATOR_ROLES: frozenset[IdentityRole] = frozenset(
    {IdentityRole.SUPPORT, IdentityRole.ADMIN}
)
