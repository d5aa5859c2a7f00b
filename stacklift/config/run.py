"""
Run configuration.

A single immutable RunConfig is built by the CLI and passed explicitly to
every component that needs it.
"""

from pydantic import BaseModel, Field


class RunConfig(BaseModel):
    """
    Settings shared by every stage of one stacklift invocation.

    Example:
        config = RunConfig(
            region="eu-west-1",
            s3_bucket="my-artifacts",
            s3_prefix="lambdas",
            quiet=True,
        )
    """

    region: str | None = Field(
        default=None,
        description="AWS region override (falls back to the usual AWS config chain)"
    )
    quiet: bool = Field(
        default=False,
        description="Suppress progress output on stderr"
    )
    s3_bucket: str | None = Field(
        default=None,
        description="Bucket receiving packaged assets"
    )
    s3_prefix: str | None = Field(
        default=None,
        description="Key prefix for packaged assets"
    )
    max_upload_workers: int = Field(
        default=8,
        ge=1,
        description="Maximum number of concurrent asset uploads"
    )
    poll_interval: float = Field(
        default=5.0,
        ge=0,
        description="Seconds between stack event polls"
    )
    change_set_poll_interval: float = Field(
        default=1.0,
        ge=0,
        description="Seconds between change set status polls"
    )

    class Config:
        frozen = True
