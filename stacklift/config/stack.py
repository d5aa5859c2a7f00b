"""
Stack operation requests.

These models describe what the engine is asked to do. They are validated
once, at the CLI boundary, and are immutable afterwards.
"""

import json
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

Capability = Literal[
    "CAPABILITY_IAM",
    "CAPABILITY_NAMED_IAM",
    "CAPABILITY_AUTO_EXPAND",
]

CAPABILITIES: tuple[str, ...] = (
    "CAPABILITY_IAM",
    "CAPABILITY_NAMED_IAM",
    "CAPABILITY_AUTO_EXPAND",
)


class Operation(str, Enum):
    """The kind of stack operation being performed."""

    APPLY = "apply"
    DELETE = "delete"


class ApplyRequest(BaseModel):
    """
    Create-or-update a stack until it settles.

    Example:
        request = ApplyRequest(
            stack_name="my-stack",
            template_body=template.dump(),
            parameters={"Env": "prod"},
            capabilities=["CAPABILITY_IAM"],
        )
    """

    stack_name: str = Field(..., min_length=1, description="Target stack name")
    template_body: str = Field(..., description="Rendered template document")
    parameters: dict[str, str] = Field(
        default_factory=dict, description="Stack parameters"
    )
    capabilities: list[Capability] = Field(
        default_factory=list, description="Capabilities to acknowledge"
    )
    tags: dict[str, str] = Field(
        default_factory=dict, description="Tags applied to the stack"
    )
    role_arn: str | None = Field(
        default=None, description="IAM role assumed by CloudFormation"
    )
    notification_arns: list[str] = Field(
        default_factory=list, description="SNS topics for stack events"
    )
    resource_types: list[str] = Field(
        default_factory=list, description="Resource types allowed in the template"
    )
    client_request_token: str | None = Field(
        default=None, description="Idempotency token for this operation"
    )

    class Config:
        frozen = True

    @property
    def operation(self) -> Operation:
        return Operation.APPLY


class DeleteRequest(BaseModel):
    """Delete a stack until it settles."""

    stack_name: str = Field(..., min_length=1, description="Target stack name")
    role_arn: str | None = Field(
        default=None, description="IAM role assumed by CloudFormation"
    )
    retain_resources: list[str] = Field(
        default_factory=list,
        description="Logical ids to keep when deleting a DELETE_FAILED stack",
    )
    client_request_token: str | None = Field(
        default=None, description="Idempotency token for this operation"
    )

    class Config:
        frozen = True

    @property
    def operation(self) -> Operation:
        return Operation.DELETE


StackRequest = ApplyRequest | DeleteRequest


def parse_key_value(text: str) -> tuple[str, str]:
    """
    Parse a `key=value` argument.

    Raises:
        ValueError: If there is no `=` in `text`
    """
    key, sep, value = text.partition("=")
    if not sep:
        raise ValueError(f"invalid value `{text}`, must be in the form `key=value`")
    return key, value


def parse_tags(text: str) -> dict[str, str]:
    """
    Parse a tag argument.

    Tags are either a JSON object (tried first) or a single `key=value` pair.
    """
    try:
        tags = json.loads(text)
    except json.JSONDecodeError:
        tags = None
    if isinstance(tags, dict):
        return {str(key): str(value) for key, value in tags.items()}

    try:
        key, value = parse_key_value(text)
    except ValueError:
        raise ValueError(
            f"invalid tag `{text}`, must be in the form `key=value` or a JSON object"
        ) from None
    return {key: value}
