"""
Stack operation coordinator.

Submits a request to an engine, renders its events as they arrive and hands
back the terminal OperationResult.
"""

import logging

from stacklift.cancellation import CancellationToken
from stacklift.config import RunConfig, StackRequest
from stacklift.stack.engine import Engine
from stacklift.stack.progress import EventPrinter
from stacklift.stack.results import OperationResult

LOG = logging.getLogger(__name__)


class StackCoordinator:
    """
    Drives one stack operation through an Engine.

    The OperationResult alone decides the outcome; events only feed the
    progress display.

    Example:
        coordinator = StackCoordinator(engine, RunConfig(quiet=False))
        result = coordinator.run(request, CancellationToken())
    """

    def __init__(self, engine: Engine, config: RunConfig, printer: EventPrinter | None = None):
        """
        Initialize the coordinator.

        Args:
            engine: Engine executing the operation
            config: Run configuration; `quiet` disables progress lines
            printer: Progress renderer (defaults to stderr)
        """
        self.engine = engine
        self.config = config
        self.printer = printer or EventPrinter()

    def run(self, request: StackRequest, token: CancellationToken) -> OperationResult:
        """
        Submit `request` and wait for its result.

        Returns:
            The engine's OperationResult, or a FAILED result if the engine
            stopped without producing one

        Raises:
            Interrupted: If `token` is cancelled before a result arrives
        """
        LOG.debug("submitting %s for stack %s", request.operation.value, request.stack_name)
        token.raise_if_cancelled()

        result: OperationResult | None = None
        stream = self.engine.submit(request, token)
        try:
            for item in stream:
                if isinstance(item, OperationResult):
                    result = item
                    break
                token.raise_if_cancelled()
                if not self.config.quiet:
                    self.printer.print_event(item)
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
            if not self.config.quiet:
                self.printer.finish()

        if result is None:
            token.raise_if_cancelled()
            LOG.warning("engine finished without a result for %s", request.stack_name)
            return OperationResult.failed(
                request.stack_name, "the operation ended without reporting a result"
            )

        LOG.debug("stack %s finished: %s", request.stack_name, result.outcome.value)
        return result
