"""Exceptions raised by the zephyr sync engine."""


class ConfigurationError(Exception):
    """Raised when the configuration cannot be used to start the engine."""

    pass


class ResolutionError(Exception):
    """Raised when an event cannot be resolved to a Zephyr execution."""

    def __init__(self, message: str, event_id: str | None = None) -> None:
        """Initialize resolution error."""
        super().__init__(message)
        self.event_id = event_id


class JobTimeoutError(Exception):
    """Raised when a Zephyr job does not complete within the configured timeout."""

    def __init__(self, job_token: str, timeout: float) -> None:
        """Initialize job timeout error."""
        super().__init__(f"Zephyr job {job_token} was not completed within {timeout} second(s)")
        self.job_token = job_token
        self.timeout = timeout


class JobCancelledError(Exception):
    """Raised by a client when awaiting a job was cancelled by the caller."""

    pass


class RemoteServiceError(Exception):
    """Raised when a remote REST API call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize remote service error."""
        super().__init__(message)
        self.status_code = status_code


class EventProcessingError(Exception):
    """Raised when more than one matching rule failed for the same event."""

    def __init__(self, event_id: str, errors: list[Exception]) -> None:
        """Initialize event processing error."""
        super().__init__(f"{len(errors)} rule(s) failed for event {event_id}: {'; '.join(map(str, errors))}")
        self.event_id = event_id
        self.errors = errors
