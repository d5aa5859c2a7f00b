"""
Engine interface.

An engine owns everything provider-specific about a stack operation:
submitting it, polling, backoff and detecting settlement. The rest of
stacklift only sees a stream of events followed by one result.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Union

from stacklift.cancellation import CancellationToken
from stacklift.config import StackRequest
from stacklift.stack.events import StackEvent
from stacklift.stack.results import OperationResult

EngineItem = Union[StackEvent, OperationResult]


class Engine(ABC):
    """
    Base class for stack orchestration engines.

    Implementations must:
    1. Yield StackEvents in the order they occurred
    2. Yield exactly one OperationResult, as the last item
    3. Raise Interrupted (never yield a result) when `token` is cancelled
    """

    @abstractmethod
    def submit(self, request: StackRequest, token: CancellationToken) -> Iterator[EngineItem]:
        """
        Start an apply or delete operation and stream its progress.

        Args:
            request: ApplyRequest or DeleteRequest
            token: Cancellation token; must be honoured at every wait

        Returns:
            Iterator of StackEvents terminated by one OperationResult
        """
        pass
