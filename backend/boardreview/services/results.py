"""Result objects returned by every public workflow operation.

Expected business-rule violations are reported through these results rather
than raised; only infrastructure faults (database unavailable, etc.)
propagate as exceptions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from boardreview.models.enums import ApplicationStatus


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    INVALID_TRANSITION = "invalid_transition"
    DUPLICATE_VOTE = "duplicate_vote"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"


@dataclass
class OperationResult:
    succeeded: bool
    errors: list[str] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    # Post-commit notification triggers (NotificationEvent instances)
    events: list = field(default_factory=list)
    # Operation-specific payload (created comment, outcome, ...)
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None, events: Optional[list] = None) -> "OperationResult":
        return cls(succeeded=True, value=value, events=list(events or []))

    @classmethod
    def fail(cls, kind: ErrorKind, *errors: str) -> "OperationResult":
        return cls(succeeded=False, errors=list(errors), error_kind=kind)


@dataclass
class TransitionResult(OperationResult):
    new_status: Optional[ApplicationStatus] = None
    # True when the event was a repeat of an already-applied idempotent event
    no_op: bool = False

    @classmethod
    def moved(
        cls,
        new_status: ApplicationStatus,
        events: Optional[list] = None,
        no_op: bool = False,
    ) -> "TransitionResult":
        return cls(
            succeeded=True,
            new_status=new_status,
            events=list(events or []),
            no_op=no_op,
        )

    @classmethod
    def fail(cls, kind: ErrorKind, *errors: str, status=None) -> "TransitionResult":
        return cls(
            succeeded=False,
            errors=list(errors),
            error_kind=kind,
            new_status=status,
        )
