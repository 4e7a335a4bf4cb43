"""Exception hierarchy for oppgave.

Every failure the queue protocol can produce derives from QueueError. The
core never retries and never swallows these; retry and give-up policy belong
to the caller (see oppgave.core.worker for the one shipped policy).
"""


class QueueError(Exception):
    """Base class for all oppgave errors."""


class SerializationError(QueueError):
    """Raised when a task value cannot be encoded.

    The payload is structurally invalid, so retrying will not help.
    """


class DecodeError(QueueError):
    """Raised when bytes read from the store are not a valid task encoding.

    When raised from Queue.pop the entry has already been moved to the
    in-flight list; it is not lost, and the caller decides whether to
    requeue, fail or discard it via the raw helpers on Queue.

    Attributes:
        raw: The undecodable bytes exactly as stored.
    """

    def __init__(self, message: str, raw: bytes):
        self.raw = raw
        super().__init__(message)

    def __str__(self) -> str:
        preview = self.raw[:64]
        suffix = "..." if len(self.raw) > 64 else ""
        return f"{super().__str__()} (raw={preview!r}{suffix})"


class StoreError(QueueError):
    """Raised when the underlying list store fails.

    Attributes:
        operation: Name of the store operation that failed.
        original: The exception raised by the store client, if any.
    """

    def __init__(self, operation: str, original: Exception | None = None, message: str | None = None):
        self.operation = operation
        self.original = original
        if message is None:
            message = f"Store operation {operation!r} failed"
            if original is not None:
                message = f"{message}: {original}"
        super().__init__(message)


class StoreUnavailableError(StoreError):
    """Raised when the store fails consecutively beyond a threshold.

    Attributes:
        failure_count: Number of consecutive failures that triggered this error.
        last_error: The last error message from the store.
    """

    def __init__(self, message: str, failure_count: int = 0, last_error: str | None = None):
        self.failure_count = failure_count
        self.last_error = last_error
        super().__init__("pop", message=message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.last_error:
            return f"{base} (last error: {self.last_error})"
        return base
