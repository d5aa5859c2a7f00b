"""
stacklift: package and apply CloudFormation stacks in one step.

stacklift takes a template that points at local code, packages and uploads
that code, rewrites the template to reference the uploaded objects and then
applies it, streaming stack events until the stack settles.

Core concepts:
- Template: A parsed template that keeps intrinsic-function tags intact
- Packaging: Deterministic archives, content-addressed S3 uploads and rewrites
- Engine: Executes a stack request and streams events and a final result
- Verdict: Exit code and output derived from the final result

Example:
    from stacklift import RunConfig, load_template, package_template

    template = load_template("stack.yaml")
    packaged = package_template(template, RunConfig(s3_bucket="artifacts"), uploader)
    print(packaged.dump())
"""

__version__ = "0.1.0"

from stacklift.cancellation import CancellationToken
from stacklift.config import ApplyRequest, DeleteRequest, Operation, RunConfig
from stacklift.errors import StackliftError
from stacklift.packaging import S3Uploader, package_template
from stacklift.stack import (
    CloudFormationEngine,
    ExitCode,
    OperationResult,
    Outcome,
    StackCoordinator,
    Verdict,
    classify,
)
from stacklift.template import Template, load_template, parse_template

__all__ = [
    "__version__",
    "CancellationToken",
    "ApplyRequest",
    "DeleteRequest",
    "Operation",
    "RunConfig",
    "StackliftError",
    "S3Uploader",
    "package_template",
    "CloudFormationEngine",
    "ExitCode",
    "OperationResult",
    "Outcome",
    "StackCoordinator",
    "Verdict",
    "classify",
    "Template",
    "load_template",
    "parse_template",
]
