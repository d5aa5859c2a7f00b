"""
Outcome classification.

Maps every (Outcome, Operation) pair to an exit code and the payloads for
stdout and stderr. The rule table covers the full product of both enums.
"""

import json
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable

from stacklift.config import Operation
from stacklift.stack import report
from stacklift.stack.results import OperationResult, Outcome


class ExitCode(IntEnum):
    """Process exit codes. These values are a stable interface for scripts."""

    SUCCESS = 0
    FAILURE = 1
    WARNING = 3
    SETTLED_IN_ERROR = 4


@dataclass(frozen=True)
class Verdict:
    """What to print and how to exit."""

    exit_code: ExitCode
    stdout: str | None
    stderr: str


_VERBS = {Operation.APPLY: "apply", Operation.DELETE: "delete"}


def _outputs_json(result: OperationResult) -> str:
    return json.dumps(dict(result.outputs), indent=2)


def _applied(result: OperationResult) -> Verdict:
    if result.resource_errors:
        return Verdict(
            ExitCode.WARNING, _outputs_json(result), report.format_warning(result, "applied")
        )
    return Verdict(ExitCode.SUCCESS, _outputs_json(result), "")


def _unchanged(result: OperationResult) -> Verdict:
    return Verdict(
        ExitCode.SUCCESS, _outputs_json(result), f"Stack {result.stack_name} is already up to date"
    )


def _deleted(result: OperationResult) -> Verdict:
    if result.resource_errors:
        return Verdict(ExitCode.WARNING, None, report.format_warning(result, "deleted"))
    return Verdict(ExitCode.SUCCESS, None, f"Stack {result.stack_name} deleted")


def _nothing_to_delete(result: OperationResult) -> Verdict:
    return Verdict(
        ExitCode.SUCCESS, None, f"Stack {result.stack_name} does not exist, nothing to delete"
    )


def _missing(result: OperationResult) -> Verdict:
    return Verdict(ExitCode.FAILURE, None, f"Stack {result.stack_name} does not exist")


def _settled_in_error(operation: Operation) -> Callable[[OperationResult], Verdict]:
    def rule(result: OperationResult) -> Verdict:
        return Verdict(
            ExitCode.SETTLED_IN_ERROR, None, report.format_failure(result, _VERBS[operation])
        )
    return rule


def _failed(operation: Operation) -> Callable[[OperationResult], Verdict]:
    def rule(result: OperationResult) -> Verdict:
        return Verdict(ExitCode.FAILURE, None, report.format_error(result, _VERBS[operation]))
    return rule


RULES: dict[tuple[Outcome, Operation], Callable[[OperationResult], Verdict]] = {
    (Outcome.SUCCEEDED, Operation.APPLY): _applied,
    (Outcome.NO_CHANGES, Operation.APPLY): _unchanged,
    (Outcome.STACK_NOT_FOUND, Operation.APPLY): _missing,
    (Outcome.SETTLED_IN_ERROR, Operation.APPLY): _settled_in_error(Operation.APPLY),
    (Outcome.FAILED, Operation.APPLY): _failed(Operation.APPLY),
    (Outcome.SUCCEEDED, Operation.DELETE): _deleted,
    (Outcome.NO_CHANGES, Operation.DELETE): _nothing_to_delete,
    (Outcome.STACK_NOT_FOUND, Operation.DELETE): _nothing_to_delete,
    (Outcome.SETTLED_IN_ERROR, Operation.DELETE): _settled_in_error(Operation.DELETE),
    (Outcome.FAILED, Operation.DELETE): _failed(Operation.DELETE),
}


def classify(result: OperationResult, operation: Operation) -> Verdict:
    """
    Decide the exit code and output for a finished operation.

    stdout is only ever set for exit codes 0 and 3.
    """
    return RULES[(result.outcome, operation)](result)