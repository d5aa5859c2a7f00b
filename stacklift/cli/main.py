"""
stacklift CLI - Apply and delete CloudFormation stacks from the command line.
"""

import logging
import sys
from dataclasses import dataclass
from typing import Any, Callable

import click
from botocore.exceptions import BotoCoreError, ClientError

from stacklift import __version__
from stacklift.cancellation import CancellationToken, cancel_on_sigint
from stacklift.cli.deploy import AwsBackend, StackDeployer
from stacklift.config import CAPABILITIES, RunConfig, parse_key_value, parse_tags
from stacklift.errors import Interrupted, StackliftError, format_chain
from stacklift.stack import ExitCode, Verdict

LOG = logging.getLogger(__name__)


@dataclass
class CliState:
    """Shared state for one invocation; tests pass a fake `backend`."""

    region: str | None = None
    backend: Any = None

    def get_backend(self) -> Any:
        if self.backend is None:
            self.backend = AwsBackend(self.region)
        return self.backend


def _parse_parameters(ctx, param, values: tuple[str, ...]) -> dict[str, str]:
    parameters = {}
    for value in values:
        try:
            key, item = parse_key_value(value)
        except ValueError as e:
            raise click.BadParameter(str(e), ctx=ctx, param=param)
        parameters[key] = item
    return parameters


def _parse_tags(ctx, param, values: tuple[str, ...]) -> dict[str, str]:
    tags = {}
    for value in values:
        try:
            tags.update(parse_tags(value))
        except ValueError as e:
            raise click.BadParameter(str(e), ctx=ctx, param=param)
    return tags


def _execute(action: Callable[[CancellationToken], Verdict]) -> None:
    """Run `action` with Ctrl-C routed to a cancellation token, then exit."""
    token = CancellationToken()
    try:
        with cancel_on_sigint(token):
            verdict = action(token)
    except Interrupted as e:
        click.echo(f"{click.style('Interrupted:', fg='yellow', bold=True)} {e}", err=True)
        sys.exit(ExitCode.FAILURE)
    except StackliftError as e:
        LOG.debug("run failed", exc_info=True)
        click.echo(f"{click.style('error:', fg='red', bold=True)} {format_chain(e)}", err=True)
        sys.exit(ExitCode.FAILURE)
    except (BotoCoreError, ClientError) as e:
        LOG.debug("AWS client error", exc_info=True)
        click.echo(f"{click.style('error:', fg='red', bold=True)} {e}", err=True)
        sys.exit(ExitCode.FAILURE)

    if verdict.stdout is not None:
        click.echo(verdict.stdout)
    if verdict.stderr:
        click.echo(verdict.stderr, err=True)
    sys.exit(int(verdict.exit_code))


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--region",
    envvar="AWS_REGION",
    help="AWS region to use (defaults to the usual AWS configuration chain)",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, region: str | None, debug: bool):
    """
    stacklift - Package local assets and apply CloudFormation stacks.

    Runs the whole change to completion, streaming stack events to stderr
    and printing stack outputs as JSON on stdout.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if ctx.obj is None:
        ctx.obj = CliState()
    ctx.obj.region = region


@cli.command("apply-stack")
@click.argument("template_path", type=click.Path(dir_okay=False, allow_dash=True))
@click.option("--stack-name", help="Stack to apply (defaults to the template file name)")
@click.option(
    "--parameters",
    multiple=True,
    callback=_parse_parameters,
    metavar="KEY=VALUE",
    help="Stack parameter, may be repeated",
)
@click.option(
    "--capabilities",
    multiple=True,
    type=click.Choice(CAPABILITIES),
    help="Capability to acknowledge, may be repeated",
)
@click.option(
    "--tags",
    multiple=True,
    callback=_parse_tags,
    metavar="KEY=VALUE|JSON",
    help="Stack tag, may be repeated",
)
@click.option("--role-arn", help="IAM role for CloudFormation to assume")
@click.option("--notification-arns", multiple=True, help="SNS topic for stack events")
@click.option("--resource-types", multiple=True, help="Resource type the template may use")
@click.option("--client-request-token", help="Idempotency token for the operation")
@click.option("--s3-bucket", help="Bucket for packaged assets")
@click.option("--s3-prefix", help="Key prefix for packaged assets")
@click.option("--quiet", is_flag=True, help="Do not print stack events")
@click.pass_obj
def apply_stack(
    state: CliState,
    template_path: str,
    stack_name: str | None,
    parameters: dict[str, str],
    capabilities: tuple[str, ...],
    tags: dict[str, str],
    role_arn: str | None,
    notification_arns: tuple[str, ...],
    resource_types: tuple[str, ...],
    client_request_token: str | None,
    s3_bucket: str | None,
    s3_prefix: str | None,
    quiet: bool,
):
    """
    Apply a template to a stack and wait for it to settle.

    Local asset paths in the template are zipped and uploaded to --s3-bucket
    first. Exit codes: 0 success, 1 failure, 3 succeeded with resource
    errors, 4 settled in an error state.

    Example:
        stacklift apply-stack stack.yaml --s3-bucket my-artifacts
        stacklift apply-stack - --stack-name my-stack --parameters Env=prod < stack.yaml
    """
    config = RunConfig(region=state.region, quiet=quiet, s3_bucket=s3_bucket, s3_prefix=s3_prefix)
    deployer = StackDeployer(config, state.get_backend())
    _execute(
        lambda token: deployer.apply_stack(
            template_path,
            token,
            stack_name=stack_name,
            parameters=parameters,
            capabilities=list(capabilities),
            tags=tags,
            role_arn=role_arn,
            notification_arns=list(notification_arns),
            resource_types=list(resource_types),
            client_request_token=client_request_token,
        )
    )


@cli.command("delete-stack")
@click.option("--stack-name", required=True, help="Stack to delete")
@click.option("--role-arn", help="IAM role for CloudFormation to assume")
@click.option(
    "--retain-resources",
    multiple=True,
    help="Logical id to keep when deleting a DELETE_FAILED stack, may be repeated",
)
@click.option("--client-request-token", help="Idempotency token for the operation")
@click.option("--quiet", is_flag=True, help="Do not print stack events")
@click.pass_obj
def delete_stack(
    state: CliState,
    stack_name: str,
    role_arn: str | None,
    retain_resources: tuple[str, ...],
    client_request_token: str | None,
    quiet: bool,
):
    """
    Delete a stack and wait for it to settle.

    Deleting a stack that does not exist succeeds.

    Example:
        stacklift delete-stack --stack-name my-stack
    """
    config = RunConfig(region=state.region, quiet=quiet)
    deployer = StackDeployer(config, state.get_backend())
    _execute(
        lambda token: deployer.delete_stack(
            stack_name,
            token,
            role_arn=role_arn,
            retain_resources=list(retain_resources),
            client_request_token=client_request_token,
        )
    )


@cli.command()
@click.argument("template_path", type=click.Path(dir_okay=False, allow_dash=True))
@click.option("--s3-bucket", required=True, help="Bucket for packaged assets")
@click.option("--s3-prefix", help="Key prefix for packaged assets")
@click.pass_obj
def package(state: CliState, template_path: str, s3_bucket: str, s3_prefix: str | None):
    """
    Upload local assets and print the rewritten template.

    Example:
        stacklift package stack.yaml --s3-bucket my-artifacts > packaged.yaml
    """
    config = RunConfig(region=state.region, quiet=True, s3_bucket=s3_bucket, s3_prefix=s3_prefix)
    deployer = StackDeployer(config, state.get_backend())
    _execute(lambda token: deployer.package_only(template_path, token))


if __name__ == "__main__":
    cli()
