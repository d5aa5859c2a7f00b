"""
Stack events and status classification.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

STACK_RESOURCE_TYPE = "AWS::CloudFormation::Stack"

# Statuses a stack can settle in. Anything else is still moving.
SUCCESS_STACK_STATUSES = frozenset({
    "CREATE_COMPLETE",
    "UPDATE_COMPLETE",
    "DELETE_COMPLETE",
    "IMPORT_COMPLETE",
})
ERROR_STACK_STATUSES = frozenset({
    "CREATE_FAILED",
    "DELETE_FAILED",
    "ROLLBACK_COMPLETE",
    "ROLLBACK_FAILED",
    "UPDATE_FAILED",
    "UPDATE_ROLLBACK_COMPLETE",
    "UPDATE_ROLLBACK_FAILED",
    "IMPORT_ROLLBACK_COMPLETE",
    "IMPORT_ROLLBACK_FAILED",
})
TERMINAL_STACK_STATUSES = SUCCESS_STACK_STATUSES | ERROR_STACK_STATUSES

# Existing stacks in these states can't be updated; they are replaced.
UNUPDATABLE_STACK_STATUSES = frozenset({
    "ROLLBACK_COMPLETE",
    "ROLLBACK_FAILED",
    "DELETE_FAILED",
})


class Sentiment(str, Enum):
    """How a status should be presented."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


def status_sentiment(status: str) -> Sentiment:
    """
    Classify a stack or resource status.

    Rollbacks are negative even when they complete; failures are always
    negative; completions are positive; everything else is in progress.
    """
    if "ROLLBACK" in status or status.endswith("_FAILED"):
        return Sentiment.NEGATIVE
    if status.endswith("_COMPLETE") or status.endswith("_SKIPPED"):
        return Sentiment.POSITIVE
    return Sentiment.NEUTRAL


def is_error_status(status: str) -> bool:
    """Whether a resource status reports a failure."""
    return status.endswith("_FAILED")


@dataclass(frozen=True)
class StackEvent:
    """One entry of a stack's event log."""

    logical_resource_id: str
    resource_type: str
    status: str
    timestamp: datetime
    physical_resource_id: str | None = None
    status_reason: str | None = None
    event_id: str | None = None

    @classmethod
    def from_api(cls, event: dict[str, Any]) -> "StackEvent":
        """Build a StackEvent from a DescribeStackEvents entry."""
        return cls(
            logical_resource_id=event["LogicalResourceId"],
            resource_type=event.get("ResourceType", ""),
            status=event["ResourceStatus"],
            timestamp=event["Timestamp"],
            physical_resource_id=event.get("PhysicalResourceId") or None,
            status_reason=event.get("ResourceStatusReason"),
            event_id=event.get("EventId"),
        )

    @property
    def sentiment(self) -> Sentiment:
        return status_sentiment(self.status)

    def is_for_stack(self, stack_id: str) -> bool:
        return self.physical_resource_id == stack_id

    def is_terminal_for(self, stack_id: str) -> bool:
        """Whether this event marks the stack itself settling."""
        return self.is_for_stack(stack_id) and self.status in TERMINAL_STACK_STATUSES
