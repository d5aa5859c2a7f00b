"""
CloudFormation engine backed by boto3.

Applies go through change sets so that an unchanged template is detected
up front and reported as NO_CHANGES instead of an error. Stacks stuck in a
state that can't be updated (ROLLBACK_COMPLETE and friends) are deleted and
created again. Progress comes from polling DescribeStackEvents; each poll
waits on the cancellation token rather than sleeping.
"""

import logging
import time
from typing import Any, Generator, Iterator

from botocore.exceptions import BotoCoreError, ClientError

from stacklift.cancellation import CancellationToken
from stacklift.config import ApplyRequest, DeleteRequest, RunConfig, StackRequest
from stacklift.stack.engine import Engine, EngineItem
from stacklift.stack.events import (
    SUCCESS_STACK_STATUSES,
    UNUPDATABLE_STACK_STATUSES,
    StackEvent,
    is_error_status,
)
from stacklift.stack.results import OperationResult, Outcome, ResourceError

LOG = logging.getLogger(__name__)

_PENDING_CHANGE_SET_STATUSES = ("CREATE_PENDING", "CREATE_IN_PROGRESS")
_EMPTY_CHANGE_SET_REASONS = (
    "The submitted information didn't contain changes.",
    "No updates are to be performed.",
)


class CloudFormationEngine(Engine):
    """
    Engine driving AWS CloudFormation.

    Example:
        engine = CloudFormationEngine(session.client("cloudformation"), config)
        for item in engine.submit(request, token):
            print(item)
    """

    def __init__(self, client: Any, config: RunConfig):
        """
        Initialize the engine.

        Args:
            client: boto3 CloudFormation client
            config: Run configuration (poll intervals)
        """
        self.client = client
        self.config = config

    def submit(self, request: StackRequest, token: CancellationToken) -> Iterator[EngineItem]:
        try:
            if isinstance(request, DeleteRequest):
                yield from self._delete(request, token)
            else:
                yield from self._apply(request, token)
        except (ClientError, BotoCoreError) as e:
            LOG.debug("CloudFormation call failed", exc_info=True)
            yield OperationResult.failed(request.stack_name, _api_error_message(e))

    def _apply(self, request: ApplyRequest, token: CancellationToken) -> Iterator[EngineItem]:
        stack = self._describe(request.stack_name)

        if stack is not None and stack["StackStatus"] in UNUPDATABLE_STACK_STATUSES:
            LOG.info("stack %s is %s and will be replaced", request.stack_name, stack["StackStatus"])
            removed = yield from self._delete_stack(stack, role_arn=request.role_arn, token=token)
            if removed.outcome is not Outcome.SUCCEEDED:
                yield removed
                return
            stack = None

        creating = stack is None or stack["StackStatus"] == "REVIEW_IN_PROGRESS"
        response = self.client.create_change_set(
            **self._change_set_args(request, "CREATE" if creating else "UPDATE")
        )
        change_set_id, stack_id = response["Id"], response["StackId"]
        LOG.debug("created change set %s for %s", change_set_id, stack_id)

        change_set = self._wait_for_change_set(change_set_id, stack_id, token)
        if change_set.get("ExecutionStatus") != "AVAILABLE":
            status = change_set.get("Status", "UNKNOWN")
            reason = change_set.get("StatusReason") or ""
            if status == "FAILED" and any(text in reason for text in _EMPTY_CHANGE_SET_REASONS):
                LOG.info("no changes to apply to %s", request.stack_name)
                last = self._latest_event(stack_id)
                if last is not None:
                    yield last
                yield self._settled(request.stack_name, stack_id, (), no_changes=True)
                return
            yield OperationResult.failed(
                request.stack_name, f"change set {status}: {reason or 'no reason given'}", stack_id
            )
            return

        marker = self._latest_event_id(stack_id)
        execute_args = {"ChangeSetName": change_set_id, "StackName": stack_id}
        if request.client_request_token:
            execute_args["ClientRequestToken"] = request.client_request_token
        self.client.execute_change_set(**execute_args)

        errors = yield from self._watch(stack_id, marker, token)
        yield self._settled(request.stack_name, stack_id, errors)

    def _delete(self, request: DeleteRequest, token: CancellationToken) -> Iterator[EngineItem]:
        stack = self._describe(request.stack_name)
        if stack is None:
            yield OperationResult.not_found(request.stack_name)
            return

        result = yield from self._delete_stack(
            stack,
            role_arn=request.role_arn,
            retain_resources=request.retain_resources,
            client_request_token=request.client_request_token,
            token=token,
        )
        yield result

    def _delete_stack(
        self,
        stack: dict[str, Any],
        token: CancellationToken,
        role_arn: str | None = None,
        retain_resources: list[str] | None = None,
        client_request_token: str | None = None,
    ) -> Generator[StackEvent, None, OperationResult]:
        stack_id = stack["StackId"]
        marker = self._latest_event_id(stack_id)

        args: dict[str, Any] = {"StackName": stack_id}
        if role_arn:
            args["RoleARN"] = role_arn
        if retain_resources:
            args["RetainResources"] = list(retain_resources)
        if client_request_token:
            args["ClientRequestToken"] = client_request_token
        self.client.delete_stack(**args)

        errors = yield from self._watch(stack_id, marker, token)
        return self._settled(stack["StackName"], stack_id, errors)

    def _change_set_args(self, request: ApplyRequest, change_set_type: str) -> dict[str, Any]:
        args: dict[str, Any] = {
            "StackName": request.stack_name,
            "ChangeSetName": f"stacklift-{int(time.time())}",
            "ChangeSetType": change_set_type,
            "TemplateBody": request.template_body,
            "Parameters": [
                {"ParameterKey": key, "ParameterValue": value}
                for key, value in request.parameters.items()
            ],
            "Capabilities": list(request.capabilities),
            "Tags": [{"Key": key, "Value": value} for key, value in request.tags.items()],
            "NotificationARNs": list(request.notification_arns),
        }
        if request.role_arn:
            args["RoleARN"] = request.role_arn
        if request.resource_types:
            args["ResourceTypes"] = list(request.resource_types)
        if request.client_request_token:
            args["ClientToken"] = request.client_request_token
        return args

    def _wait_for_change_set(
        self, change_set_id: str, stack_id: str, token: CancellationToken
    ) -> dict[str, Any]:
        while True:
            token.wait(self.config.change_set_poll_interval)
            change_set = self.client.describe_change_set(
                ChangeSetName=change_set_id, StackName=stack_id
            )
            if change_set.get("Status") not in _PENDING_CHANGE_SET_STATUSES:
                return change_set

    def _watch(
        self, stack_id: str, marker: str | None, token: CancellationToken
    ) -> Generator[StackEvent, None, tuple[ResourceError, ...]]:
        """Yield new events until the stack settles; return resource errors."""
        errors: list[ResourceError] = []
        while True:
            token.wait(self.config.poll_interval)
            events = self._events_since(stack_id, marker)
            for event in events:
                if is_error_status(event.status) and not event.is_for_stack(stack_id):
                    errors.append(ResourceError.from_event(event))
                yield event
                if event.is_terminal_for(stack_id):
                    return tuple(errors)
            if events:
                marker = events[-1].event_id

    def _events_since(self, stack_id: str, marker: str | None) -> list[StackEvent]:
        """Events newer than `marker`, oldest first."""
        newest_first: list[StackEvent] = []
        args = {"StackName": stack_id}
        while True:
            response = self.client.describe_stack_events(**args)
            for raw in response.get("StackEvents", []):
                if marker is not None and raw.get("EventId") == marker:
                    return newest_first[::-1]
                newest_first.append(StackEvent.from_api(raw))
            next_token = response.get("NextToken")
            if not next_token:
                return newest_first[::-1]
            args["NextToken"] = next_token

    def _latest_event(self, stack_id: str) -> StackEvent | None:
        events = self.client.describe_stack_events(StackName=stack_id).get("StackEvents", [])
        return StackEvent.from_api(events[0]) if events else None

    def _latest_event_id(self, stack_id: str) -> str | None:
        event = self._latest_event(stack_id)
        return event.event_id if event is not None else None

    def _describe(self, stack_name: str) -> dict[str, Any] | None:
        try:
            response = self.client.describe_stacks(StackName=stack_name)
        except ClientError as e:
            error = e.response.get("Error", {})
            if error.get("Code") == "ValidationError" and "does not exist" in error.get("Message", ""):
                return None
            raise
        stacks = response.get("Stacks", [])
        return stacks[0] if stacks else None

    def _settled(
        self,
        stack_name: str,
        stack_id: str,
        errors: tuple[ResourceError, ...],
        no_changes: bool = False,
    ) -> OperationResult:
        stack = self._describe(stack_id)
        if stack is None:
            return OperationResult.failed(stack_name, "stack disappeared while settling", stack_id)

        status = stack["StackStatus"]
        if no_changes:
            outcome = Outcome.NO_CHANGES
        elif status in SUCCESS_STACK_STATUSES:
            outcome = Outcome.SUCCEEDED
        else:
            outcome = Outcome.SETTLED_IN_ERROR

        return OperationResult(
            outcome=outcome,
            stack_name=stack_name,
            stack_id=stack_id,
            stack_status=status,
            status_reason=stack.get("StackStatusReason"),
            outputs={
                output["OutputKey"]: output.get("OutputValue", "")
                for output in stack.get("Outputs", [])
            },
            resource_errors=errors,
        )


def _api_error_message(error: Exception) -> str:
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code", "Error")
        message = details.get("Message") or str(error)
        return f"{code}: {message}"
    return str(error)
