RECOVERABLE_STATUS_CODES: frozenset[int] = frozenset({403, 404, 429, 503})


class TextGenerationError(RuntimeError):
    def __init__(self, model: str, detail: str, status_code: int | None = None) -> None:
        super().__init__(f"Model '{model}' failed: {detail}")
        self.model = model
        self.detail = detail
        self.status_code = status_code

    @property
    def recoverable(self) -> bool:
        return self.status_code in RECOVERABLE_STATUS_CODES


class TextGenerationTimeout(TextGenerationError):
    def __init__(self, model: str, timeout_seconds: float) -> None:
        super().__init__(model, f"no response within {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds

    @property
    def recoverable(self) -> bool:
        return True
