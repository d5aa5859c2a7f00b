"""
Terminal results of stack operations.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from stacklift.stack.events import StackEvent


class Outcome(str, Enum):
    """Every shape an operation can end in."""

    SUCCEEDED = "succeeded"
    """The stack settled in a success state (resource errors possible)"""

    NO_CHANGES = "no_changes"
    """The stack already matched the requested state"""

    STACK_NOT_FOUND = "stack_not_found"
    """The target stack doesn't exist"""

    SETTLED_IN_ERROR = "settled_in_error"
    """The stack settled in a failed or rolled-back state"""

    FAILED = "failed"
    """The operation couldn't run (validation, permissions, transport)"""


@dataclass(frozen=True)
class ResourceError:
    """A failure reported for one resource during an operation."""

    logical_resource_id: str
    resource_type: str
    status: str
    reason: str | None = None

    @classmethod
    def from_event(cls, event: StackEvent) -> "ResourceError":
        return cls(
            logical_resource_id=event.logical_resource_id,
            resource_type=event.resource_type,
            status=event.status,
            reason=event.status_reason,
        )


@dataclass(frozen=True)
class OperationResult:
    """
    The single terminal record of a stack operation.

    Produced exactly once per run, after the last StackEvent.
    """

    outcome: Outcome
    stack_name: str
    stack_id: str | None = None
    stack_status: str | None = None
    status_reason: str | None = None
    outputs: Mapping[str, str] = field(default_factory=dict)
    resource_errors: tuple[ResourceError, ...] = ()
    failure_reason: str | None = None

    @property
    def stack_label(self) -> str:
        return self.stack_id or self.stack_name

    @classmethod
    def failed(
        cls, stack_name: str, reason: str, stack_id: str | None = None
    ) -> "OperationResult":
        return cls(
            outcome=Outcome.FAILED,
            stack_name=stack_name,
            stack_id=stack_id,
            failure_reason=reason,
        )

    @classmethod
    def not_found(cls, stack_name: str) -> "OperationResult":
        return cls(outcome=Outcome.STACK_NOT_FOUND, stack_name=stack_name)
