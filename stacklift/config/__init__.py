"""
Configuration classes for stacklift.

RunConfig holds per-invocation settings; ApplyRequest and DeleteRequest
describe the stack operation handed to the engine.
"""

from stacklift.config.run import RunConfig
from stacklift.config.stack import (
    CAPABILITIES,
    ApplyRequest,
    Capability,
    DeleteRequest,
    Operation,
    StackRequest,
    parse_key_value,
    parse_tags,
)

__all__ = [
    "RunConfig",
    # Stack requests
    "ApplyRequest",
    "DeleteRequest",
    "StackRequest",
    "Operation",
    "Capability",
    "CAPABILITIES",
    # Argument parsing
    "parse_key_value",
    "parse_tags",
]
