"""
Human-readable reports for failed and partially failed operations.
"""

import re
from typing import Iterable

import click

from stacklift.stack.results import OperationResult, ResourceError

NO_REASON = "No reason"

_CANCELLED = "Resource creation cancelled"
_MISSING_PERMISSION = re.compile(
    r"(?:(?:User|Principal): (?P<principal>\S+) )?is not authorized to perform: (?P<permission>[\w:*-]+)"
)
_RESOURCE_ERRORS = re.compile(
    r"The following resource\(s\) failed to (?:create|update|delete): \[(?P<ids>[^\]]*)\]"
)


def display_list(items: Iterable[str]) -> str:
    """
    Join items as an English list.

    Example:
        >>> display_list(["a", "b", "c"])
        'a, b, and c'
    """
    items = list(items)
    if len(items) <= 1:
        return "".join(items)
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def get_hint(reason: str | None) -> str | None:
    """Suggest a next step for a CloudFormation status reason."""
    if not reason:
        return None
    if _CANCELLED in reason:
        return "See preceding resource errors"

    match = _MISSING_PERMISSION.search(reason)
    if match:
        principal = match.group("principal") or "yourself"
        return (
            f"Give {click.style(principal, bold=True)} the "
            f"{click.style(match.group('permission'), bold=True)} permission"
        )

    match = _RESOURCE_ERRORS.search(reason)
    if match:
        ids = [item.strip() for item in match.group("ids").split(",") if item.strip()]
        if ids:
            return f"See resource error(s) for {display_list(click.style(i, bold=True) for i in ids)}"
    return None


def format_resource_errors(errors: Iterable[ResourceError]) -> str:
    lines = []
    for index, error in enumerate(errors, 1):
        reason = error.reason or NO_REASON
        lines.append("")
        lines.append(f"{index}. {_label('Resource:')} {error.logical_resource_id}")
        lines.append(f"   {_label('Type:', 9)} {error.resource_type}")
        lines.append(f"   {_label('Status:', 9)} {click.style(error.status, fg='red')}")
        lines.append(f"   {_label('Reason:', 9)} {reason}")
        hint = get_hint(reason)
        if hint:
            lines.append(f"   {_label('Hint:', 9)} {hint}")
    return "\n".join(lines)


def format_failure(result: OperationResult, verb: str) -> str:
    """Report a stack that settled in an error state."""
    lines = [
        f"Failed to {verb} stack {click.style(result.stack_label, bold=True)}:",
        "",
        f"   {_label('Status:')} {click.style(result.stack_status or 'UNKNOWN', fg='red')}",
        f"   {_label('Reason:')} {result.status_reason or NO_REASON}",
    ]
    hint = get_hint(result.status_reason)
    if hint:
        lines.append(f"   {_label('Hint:', 7)} {hint}")

    if result.resource_errors:
        lines.append("")
        lines.append(
            "What went wrong? The following resource errors occurred during the operation:"
        )
        lines.append(format_resource_errors(result.resource_errors))
    return "\n".join(lines)


def format_warning(result: OperationResult, verb: str) -> str:
    """Report a successful operation that had resource errors along the way."""
    lines = [
        f"Stack {click.style(result.stack_label, bold=True)} "
        f"{verb} with {click.style(result.stack_status or 'UNKNOWN', fg='green')}, "
        "but the following resource errors occurred during the operation:",
        format_resource_errors(result.resource_errors),
    ]
    return "\n".join(lines)


def format_error(result: OperationResult, verb: str) -> str:
    """Report an operation that couldn't run at all."""
    reason = result.failure_reason or NO_REASON
    return f"Failed to {verb} stack {result.stack_label}: {reason}"


def _label(text: str, width: int = 0) -> str:
    return click.style(text.ljust(width), bold=True)
