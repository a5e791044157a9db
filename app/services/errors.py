from uuid import UUID


class ValidationError(ValueError):
    def __init__(self, field: str, detail: str) -> None:
        super().__init__(detail)
        self.field = field


class ConversationNotFoundError(LookupError):
    def __init__(self, conversation_id: UUID) -> None:
        super().__init__(f"Conversation '{conversation_id}' not found")
        self.conversation_id = conversation_id


class ConversationAccessDeniedError(PermissionError):
    def __init__(self, conversation_id: UUID) -> None:
        super().__init__(
            f"Conversation '{conversation_id}' does not belong to the current customer"
        )
        self.conversation_id = conversation_id


class ConversationClosedError(ValueError):
    def __init__(self, conversation_id: UUID) -> None:
        super().__init__(
            f"Conversation '{conversation_id}' is resolved and no longer accepts "
            "automated replies"
        )
        self.conversation_id = conversation_id


class ConversationConflictError(ValueError):
    def __init__(self, conversation_id: UUID, open_conversation_id: UUID) -> None:
        super().__init__(
            f"Conversation '{conversation_id}' cannot be reopened while "
            f"conversation '{open_conversation_id}' is open for the same customer"
        )
        self.conversation_id = conversation_id
        self.open_conversation_id = open_conversation_id


class ServiceUnavailableError(RuntimeError):
    def __init__(self, detail: str = "automated assistant temporarily unavailable") -> None:
        super().__init__(detail)
