"""Error types for tabroom."""


class ValidationError(Exception):
    """A room code entered by the user failed validation."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TransportError(Exception):
    """A call to the background process failed."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Transport error {status_code}: {detail}")


class MalformedStorageError(ValueError):
    """The persisted room mapping could not be decoded."""


class InvalidStateError(RuntimeError):
    """An action was invoked in a session state that does not allow it."""
