"""Error taxonomy for the job and persistence core.

None of these are process-fatal. Collaborator and task errors are turned
into outcome values by the job supervisor; persistence errors are raised by
the local store and absorbed by the application state.
"""


class OEISTuiError(Exception):
    """Base class for all errors raised by the core."""


class CollaboratorError(OEISTuiError):
    """Network, timeout or malformed-response failure reported by the OEIS client."""


class TaskAbnormalTermination(OEISTuiError):
    """A background task ended without producing a result.

    ``panicked`` is True when the task crashed with an unexpected exception
    and False when it was cancelled by the runtime.
    """

    def __init__(self, message: str, panicked: bool = False):
        super().__init__(message)
        self.panicked = panicked

    @property
    def tag(self) -> str:
        return "panicked" if self.panicked else "aborted"


class PersistenceError(OEISTuiError):
    """Serialization or storage-engine failure in the local store."""
