class CVOptimizerError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CVOptimizerError):
    """Missing or invalid user input. The message is shown to the caller as-is."""

    status_code = 400


class NotFoundError(CVOptimizerError):
    status_code = 404

    def __init__(self, message: str = "Conversation not found"):
        super().__init__(message)


class CorruptStateError(CVOptimizerError):
    """A persisted record exists but cannot be read back."""

    status_code = 404

    def __init__(self, message: str = "Conversation record is unreadable"):
        super().__init__(message)


class UpstreamError(CVOptimizerError):
    """The model, text extractor or renderer failed.

    Only ``message`` reaches the caller; the original exception is chained
    and logged.
    """

    status_code = 500

    def __init__(self, prefix: str, stage: str):
        super().__init__(f"{prefix}: {stage} failed")
        self.prefix = prefix
        self.stage = stage
