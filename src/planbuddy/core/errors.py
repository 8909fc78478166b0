"""Error taxonomy shared by the core, adapters and CLI."""


class PlanBuddyError(Exception):
    """Base class for all Planning Buddy errors."""

    pass


class ValidationError(PlanBuddyError):
    """Raised for bad input, e.g. an empty title. Never retried."""

    pass


class NotFoundError(PlanBuddyError, LookupError):
    """Raised when a task id no longer exists. Callers treat this as a no-op."""

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class StorageError(PlanBuddyError):
    """Raised when the record store cannot read or durably write a bucket."""

    pass


class AuthError(PlanBuddyError):
    """Raised by a ticket source when authentication is missing or rejected."""

    pass


class TransportError(PlanBuddyError):
    """Raised by a ticket source on network or API failures."""

    pass


class SyncInProgressError(PlanBuddyError):
    """Raised when a sync is requested while another one is still running."""

    pass
