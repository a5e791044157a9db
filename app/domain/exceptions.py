from app.domain.enums import ConversationStatus, TransitionAction


class InvalidConversationTransition(ValueError):
    def __init__(self, current: ConversationStatus, action: TransitionAction) -> None:
        super().__init__(
            f"Cannot apply '{action.value}' to a conversation in state '{current.value}'."
        )
        self.current = current
        self.action = action


class SentimentOutOfRange(ValueError):
    def __init__(self, score: int) -> None:
        super().__init__(f"Sentiment score {score} is outside the 1-5 range.")
        self.score = score
