"""
Exception hierarchy for boardsync.

Not-found errors are expected at runtime (stale UI references) and are
ignored by the controller. InvariantViolation is a programming error and
subclasses AssertionError so it is never mistaken for a recoverable one.
"""


class BoardSyncError(Exception):
    """Base class for all boardsync errors."""
    pass


class TaskNotFound(BoardSyncError, KeyError):
    """Raised when a command references a task id absent from the board."""

    def __init__(self, task_id: str):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task not found: {self.task_id}"


class ColumnNotFound(BoardSyncError, KeyError):
    """Raised when a command references an unknown column id."""

    def __init__(self, column_id: str):
        super().__init__(column_id)
        self.column_id = column_id

    def __str__(self) -> str:
        return f"Column not found: {self.column_id}"


class ValidationError(BoardSyncError, ValueError):
    """Raised when a task draft or patch fails validation."""
    pass


class GatewayError(BoardSyncError):
    """Raised when the persistent store or its transport rejects a call."""
    pass


class ReconciliationError(BoardSyncError):
    """Raised when the refetch after a failed remote write also fails."""
    pass


class ConfigError(BoardSyncError):
    """Raised when configuration is invalid or incomplete."""
    pass


class InvariantViolation(AssertionError):
    """Raised when a board breaks its structural invariants."""
    pass
