"""
Friend Graph Error Kinds

LoadFailure and MutationFailure are recoverable at the UI level
(retry, or show a transient message). Malformed store rows are not
errors: the loader filters and logs them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Error kinds the current-error slot can hold."""
    LOAD_FAILURE = "load_failure"
    MUTATION_FAILURE = "mutation_failure"


class StoreError(Exception):
    """A store read or write did not succeed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LoadFailure(Exception):
    """Roster or connection fetch failed. No graph is published."""

    def __init__(self, stage: str, cause: Exception, generation: int = 0):
        super().__init__(f"load failed at {stage}: {cause}")
        self.stage = stage
        self.cause = cause
        self.generation = generation


class MutationFailure(Exception):
    """An add/remove was rejected or its remote write failed.

    Raised only once the local edit has been reverted.
    """

    def __init__(self, op: str, target_id: str, detail: str, rejected: bool = False):
        super().__init__(f"{op} {target_id} failed: {detail}")
        self.op = op
        self.target_id = target_id
        self.detail = detail
        # True when refused before any local or remote change
        self.rejected = rejected


@dataclass
class SessionError:
    """The current-error slot shown by the renderer."""
    kind: ErrorKind
    message: str
    target_id: Optional[str] = None
    retryable: bool = True

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "target_id": self.target_id,
            "retryable": self.retryable,
        }
