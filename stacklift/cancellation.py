"""
Process-wide cancellation for a stacklift run.
"""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator

from stacklift.errors import Interrupted

LOG = logging.getLogger(__name__)


class CancellationToken:
    """
    A one-shot cancellation flag shared by every suspend point of a run.

    Upload workers check it before each remote call and the engine waits on
    it between polls, so setting it wakes a waiting poll immediately.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Safe to call from a signal handler."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise Interrupted if cancellation was requested."""
        if self._event.is_set():
            raise Interrupted()

    def wait(self, timeout: float) -> None:
        """
        Sleep for up to `timeout` seconds.

        Raises:
            Interrupted: If cancellation is requested before or during the wait
        """
        if self._event.wait(timeout):
            raise Interrupted()


@contextmanager
def cancel_on_sigint(token: CancellationToken) -> Iterator[CancellationToken]:
    """
    Route SIGINT to `token` for the duration of the block.

    Only the main thread may install signal handlers; elsewhere the token is
    yielded unchanged and Ctrl-C keeps its default behaviour.
    """
    if threading.current_thread() is not threading.main_thread():
        yield token
        return

    def _handler(signum, frame):
        LOG.debug("received signal %s, cancelling run", signum)
        token.cancel()
        # A second Ctrl-C goes to the previous handler and force-quits.
        signal.signal(signal.SIGINT, previous if previous is not None else signal.default_int_handler)

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)
