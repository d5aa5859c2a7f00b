"""
Deployment workflows behind the stacklift commands.

Provides the package, apply and delete flows, independent of click so they
can be driven with fake backends in tests.
"""

import logging
from pathlib import Path
from typing import Any

import boto3
from pydantic import ValidationError

from stacklift.cancellation import CancellationToken
from stacklift.config import ApplyRequest, DeleteRequest, RunConfig
from stacklift.errors import ConfigurationError, StackOperationError
from stacklift.packaging import S3Uploader, package_template
from stacklift.stack import (
    CloudFormationEngine,
    Engine,
    EventPrinter,
    ExitCode,
    StackCoordinator,
    Verdict,
    classify,
)
from stacklift.template import Template, load_template

LOG = logging.getLogger(__name__)


class AwsBackend:
    """
    Creates the AWS-backed engine and uploader for a run.

    Credentials and region come from the usual boto3 configuration chain;
    `region` overrides the configured region.
    """

    def __init__(self, region: str | None = None):
        self.region = region
        self._session: boto3.session.Session | None = None

    @property
    def session(self) -> boto3.session.Session:
        if self._session is None:
            self._session = boto3.session.Session(region_name=self.region)
        return self._session

    def engine(self, config: RunConfig) -> Engine:
        return CloudFormationEngine(self.session.client("cloudformation"), config)

    def uploader(self, config: RunConfig) -> S3Uploader | None:
        if not config.s3_bucket:
            return None
        return S3Uploader(self.session.client("s3"), config.s3_bucket, config.s3_prefix)


def default_stack_name(template_path: str | Path) -> str:
    """
    Derive a stack name from the template file name.

    `deployment/cloudformation/my-stack.yaml` becomes `my-stack`.

    Raises:
        ConfigurationError: If the template is read from stdin
    """
    if str(template_path) == "-":
        raise ConfigurationError("--stack-name is required when the template is read from STDIN")
    return Path(template_path).stem


class StackDeployer:
    """
    Runs one stacklift command end to end.

    Example:
        deployer = StackDeployer(RunConfig(s3_bucket="artifacts"), AwsBackend("eu-west-1"))
        verdict = deployer.apply_stack("stack.yaml", CancellationToken())
        sys.exit(verdict.exit_code)
    """

    def __init__(self, config: RunConfig, backend: Any, printer: EventPrinter | None = None):
        """
        Initialize the deployer.

        Args:
            config: Run configuration
            backend: Object providing `engine(config)` and `uploader(config)`
            printer: Progress renderer (defaults to stderr)
        """
        self.config = config
        self.backend = backend
        self.printer = printer

    def package(self, template_path: str | Path, token: CancellationToken) -> Template:
        """
        Load a template and package its local assets.

        Raises:
            TemplateError, AssetError, UploadError: Before anything is deployed
            ConfigurationError: If assets need uploading but no bucket is set
        """
        template = load_template(template_path)
        return package_template(template, self.config, self.backend.uploader(self.config), token)

    def package_only(self, template_path: str | Path, token: CancellationToken) -> Verdict:
        """Package a template and return it as the stdout payload."""
        if not self.config.s3_bucket:
            raise ConfigurationError("--s3-bucket is required to package a template")
        packaged = self.package(template_path, token)
        return Verdict(ExitCode.SUCCESS, packaged.dump().rstrip("\n"), "")

    def apply_stack(
        self,
        template_path: str | Path,
        token: CancellationToken,
        stack_name: str | None = None,
        **options: Any,
    ) -> Verdict:
        """
        Package a template and apply it until the stack settles.

        Args:
            template_path: Template file, or `-` for STDIN
            token: Cancellation token
            stack_name: Target stack (defaults to the template file stem)
            **options: Extra ApplyRequest fields (parameters, capabilities, tags, ...)
        """
        name = stack_name or default_stack_name(template_path)
        LOG.debug("applying %s to stack %s", template_path, name)
        packaged = self.package(template_path, token)
        request = _build(ApplyRequest, stack_name=name, template_body=packaged.dump(), **options)
        return self._run(request, token)

    def delete_stack(self, stack_name: str, token: CancellationToken, **options: Any) -> Verdict:
        """Delete a stack until it settles; a missing stack is not an error."""
        request = _build(DeleteRequest, stack_name=stack_name, **options)
        return self._run(request, token)

    def _run(self, request: ApplyRequest | DeleteRequest, token: CancellationToken) -> Verdict:
        coordinator = StackCoordinator(self.backend.engine(self.config), self.config, self.printer)
        result = coordinator.run(request, token)
        return classify(result, request.operation)


def _build(model: Any, **fields: Any) -> Any:
    try:
        return model(**fields)
    except ValidationError as e:
        raise StackOperationError(f"invalid {model.__name__}: {e}") from e


__all__ = [
    "AwsBackend",
    "StackDeployer",
    "default_stack_name",
]
