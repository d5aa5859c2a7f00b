"""
Stack operations: engines, event streaming and outcome classification.
"""

from stacklift.stack.cloudformation import CloudFormationEngine
from stacklift.stack.coordinator import StackCoordinator
from stacklift.stack.engine import Engine, EngineItem
from stacklift.stack.events import Sentiment, StackEvent, status_sentiment
from stacklift.stack.outcome import ExitCode, Verdict, classify
from stacklift.stack.progress import EventPrinter
from stacklift.stack.results import OperationResult, Outcome, ResourceError

__all__ = [
    # Engines
    "Engine",
    "EngineItem",
    "CloudFormationEngine",
    # Events and results
    "StackEvent",
    "Sentiment",
    "status_sentiment",
    "OperationResult",
    "Outcome",
    "ResourceError",
    # Coordination
    "StackCoordinator",
    "EventPrinter",
    # Classification
    "ExitCode",
    "Verdict",
    "classify",
]
