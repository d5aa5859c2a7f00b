"""
Exception hierarchy for stacklift.

Packaging, upload and template errors are raised before any stack is
touched. Engine-side outcomes (a stack settling in an error state, resource
errors) are carried on the OperationResult rather than raised.
"""

from pathlib import Path


class StackliftError(Exception):
    """Base class for all stacklift errors."""
    pass


class AssetError(StackliftError):
    """Raised when a local asset cannot be packaged."""

    def __init__(self, path: str | Path, message: str, resource_id: str | None = None):
        self.path = Path(path)
        self.resource_id = resource_id
        target = f" for `{resource_id}`" if resource_id else ""
        super().__init__(f"couldn't package `{self.path}`{target}: {message}")


class AssetNotFound(AssetError):
    """The asset path does not exist."""
    pass


class AssetUnreadable(AssetError):
    """The asset path exists but could not be read."""
    pass


class UploadError(StackliftError):
    """Raised when a packaged asset cannot be stored."""

    def __init__(self, bucket: str, key: str, message: str):
        self.bucket = bucket
        self.key = key
        super().__init__(f"couldn't upload s3://{bucket}/{key}: {message}")


class UploadNetworkError(UploadError):
    """Transport failure, timeout or unexpected service error."""
    pass


class UploadPermissionDenied(UploadError):
    """The credentials in use may not read or write the target key."""
    pass


class TemplateError(StackliftError):
    """Base class for template loading errors."""
    pass


class TemplateReadError(TemplateError):
    """The template source could not be read."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"couldn't read template `{source}`: {message}")


class TemplateParseError(TemplateError):
    """The template is not a valid YAML/JSON document."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"invalid template `{source}`: {message}")


class RewriteRefused(StackliftError):
    """
    Raised when a template rewrite is missing an upload record.

    This indicates a bug in the packaging pipeline, never bad user input.
    """
    pass


class ConfigurationError(StackliftError):
    """The invocation is missing settings it needs."""
    pass


class StackOperationError(StackliftError):
    """Raised for invalid stack operation requests."""
    pass


class Interrupted(StackliftError):
    """The run was cancelled before it reached a result."""

    def __init__(self, message: str = "interrupted before the operation settled"):
        super().__init__(message)


def format_chain(error: BaseException) -> str:
    """
    Render an exception and its causes as a single line.

    Example:
        >>> format_chain(outer)
        "couldn't upload s3://bucket/key: connection reset"
    """
    parts = [str(error) or type(error).__name__]
    seen = {id(error)}
    cause = error.__cause__ or error.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        message = str(cause) or type(cause).__name__
        if message not in parts[-1]:
            parts.append(message)
        cause = cause.__cause__ or cause.__context__
    return ": ".join(parts)
