"""CLI entry points for stacklift."""

from stacklift.cli.deploy import AwsBackend, StackDeployer, default_stack_name

__all__ = [
    "AwsBackend",
    "StackDeployer",
    "default_stack_name",
]
