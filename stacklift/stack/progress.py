"""
Progress lines for stack events.
"""

from typing import IO

import click

from stacklift.stack.events import STACK_RESOURCE_TYPE, Sentiment, StackEvent

_SHORT_STATUSES = {
    "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS": "UPDATE_CLEANUP_IN_PROGRESS",
    "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS": "ROLLBACK_CLEANUP_IN_PROGRESS",
}
_STATUS_WIDTH = len("ROLLBACK_CLEANUP_IN_PROGRESS")
_COLORS = {
    Sentiment.POSITIVE: "green",
    Sentiment.NEUTRAL: "yellow",
    Sentiment.NEGATIVE: "red",
}


class EventPrinter:
    """
    Renders one line per stack event to stderr.

    Columns widen as longer ids and types are seen, so lines stay aligned
    for the common case of short resource ids.
    """

    def __init__(self, file: IO[str] | None = None, logical_id_width: int = 0):
        self.file = file
        self.logical_id_width = logical_id_width
        self.resource_type_width = len(STACK_RESOURCE_TYPE)
        self.printed = 0

    def format_event(self, event: StackEvent) -> str:
        self.logical_id_width = max(self.logical_id_width, len(event.logical_resource_id))
        self.resource_type_width = max(self.resource_type_width, len(event.resource_type))

        status = _SHORT_STATUSES.get(event.status, event.status)
        columns = [
            event.timestamp.isoformat(timespec="milliseconds"),
            click.style(status.ljust(_STATUS_WIDTH), fg=_COLORS[event.sentiment]),
            event.logical_resource_id.ljust(self.logical_id_width),
            event.resource_type.ljust(self.resource_type_width),
        ]
        if event.status_reason:
            columns.append(click.style(event.status_reason, fg="bright_black"))
        return " ".join(columns).rstrip()

    def print_event(self, event: StackEvent) -> None:
        click.echo(self.format_event(event), file=self.file, err=self.file is None)
        self.printed += 1

    def finish(self) -> None:
        if self.printed:
            click.echo("", file=self.file, err=self.file is None)
