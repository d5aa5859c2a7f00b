"""
Tests for the stack coordinator, event printing and cancellation.
"""

import io
import signal
from datetime import datetime, timezone

import pytest

from stacklift.cancellation import CancellationToken, cancel_on_sigint
from stacklift.config import DeleteRequest, RunConfig
from stacklift.errors import Interrupted
from stacklift.stack import (
    Engine,
    EventPrinter,
    OperationResult,
    Outcome,
    Sentiment,
    StackCoordinator,
    StackEvent,
    status_sentiment,
)

REQUEST = DeleteRequest(stack_name="my-stack")


class CancellingEngine(Engine):
    """Engine that cancels the run after its first event."""

    def __init__(self, event, result):
        self.event = event
        self.result = result
        self.closed = False

    def submit(self, request, token):
        try:
            yield self.event
            token.cancel()
            yield self.event
            yield self.result
        finally:
            self.closed = True


class TestStackCoordinator:
    """Tests for StackCoordinator.run."""

    def test_returns_result_and_prints_events(self, scripted_engine, event_factory):
        """Test events are printed and the result is returned."""
        result = OperationResult(outcome=Outcome.SUCCEEDED, stack_name="my-stack")
        engine = scripted_engine([
            event_factory(status="DELETE_IN_PROGRESS"),
            event_factory(status="DELETE_COMPLETE"),
            result,
        ])
        out = io.StringIO()

        returned = StackCoordinator(engine, RunConfig(), EventPrinter(file=out)).run(
            REQUEST, CancellationToken()
        )

        assert returned is result
        lines = out.getvalue().splitlines()
        assert len(lines) == 3
        assert "DELETE_IN_PROGRESS" in lines[0]
        assert "DELETE_COMPLETE" in lines[1]
        assert lines[2] == ""
        assert engine.requests == [REQUEST]

    def test_quiet_prints_nothing(self, scripted_engine, event_factory):
        """Test quiet mode suppresses progress output."""
        engine = scripted_engine([
            event_factory(),
            OperationResult(outcome=Outcome.SUCCEEDED, stack_name="my-stack"),
        ])
        out = io.StringIO()

        StackCoordinator(engine, RunConfig(quiet=True), EventPrinter(file=out)).run(
            REQUEST, CancellationToken()
        )

        assert out.getvalue() == ""

    def test_missing_result_is_a_failure(self, scripted_engine, event_factory):
        """Test an engine stopping without a result yields FAILED."""
        engine = scripted_engine([event_factory()])

        result = StackCoordinator(engine, RunConfig(quiet=True)).run(REQUEST, CancellationToken())

        assert result.outcome is Outcome.FAILED
        assert result.stack_name == "my-stack"

    def test_cancelled_before_submit(self, scripted_engine):
        """Test a cancelled token never reaches the engine."""
        engine = scripted_engine([])
        token = CancellationToken()
        token.cancel()

        with pytest.raises(Interrupted):
            StackCoordinator(engine, RunConfig(quiet=True)).run(REQUEST, token)

        assert engine.requests == []

    def test_cancelled_mid_stream(self, event_factory):
        """Test cancellation stops the stream and closes the engine."""
        engine = CancellingEngine(
            event_factory(), OperationResult(outcome=Outcome.SUCCEEDED, stack_name="my-stack")
        )

        with pytest.raises(Interrupted):
            StackCoordinator(engine, RunConfig(quiet=True)).run(REQUEST, CancellationToken())

        assert engine.closed is True


class TestEventPrinter:
    """Tests for EventPrinter."""

    def test_format_event(self):
        """Test an event renders timestamp, status, id, type and reason."""
        event = StackEvent(
            logical_resource_id="Bucket",
            resource_type="AWS::S3::Bucket",
            status="CREATE_FAILED",
            timestamp=datetime(2024, 5, 1, 12, 30, 0, 250000, tzinfo=timezone.utc),
            status_reason="Bucket already exists",
        )

        line = EventPrinter().format_event(event)

        assert line.startswith("2024-05-01T12:30:00.250+00:00")
        assert "Bucket" in line
        assert "AWS::S3::Bucket" in line
        assert "Bucket already exists" in line

    def test_cleanup_statuses_are_shortened(self, event_factory):
        """Test long cleanup statuses are abbreviated."""
        line = EventPrinter().format_event(
            event_factory(status="UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS")
        )

        assert "ROLLBACK_CLEANUP_IN_PROGRESS" in line
        assert "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS" not in line

    def test_columns_grow(self, event_factory):
        """Test the logical id column widens to the longest id seen."""
        printer = EventPrinter()
        printer.format_event(event_factory(logical_id="AVeryLongLogicalResourceId"))

        assert printer.logical_id_width == len("AVeryLongLogicalResourceId")

    def test_finish_without_events(self):
        """Test finish prints nothing when no event was printed."""
        out = io.StringIO()

        EventPrinter(file=out).finish()

        assert out.getvalue() == ""


class TestSentiment:
    """Tests for status_sentiment."""

    @pytest.mark.parametrize(
        "status,expected",
        [
            ("CREATE_COMPLETE", Sentiment.POSITIVE),
            ("IMPORT_SKIPPED", Sentiment.POSITIVE),
            ("CREATE_IN_PROGRESS", Sentiment.NEUTRAL),
            ("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", Sentiment.NEUTRAL),
            ("CREATE_FAILED", Sentiment.NEGATIVE),
            ("ROLLBACK_COMPLETE", Sentiment.NEGATIVE),
            ("UPDATE_ROLLBACK_IN_PROGRESS", Sentiment.NEGATIVE),
        ],
    )
    def test_sentiment(self, status, expected):
        """Test rollbacks and failures are negative, completions positive."""
        assert status_sentiment(status) is expected


class TestCancellation:
    """Tests for CancellationToken and cancel_on_sigint."""

    def test_wait_returns_when_not_cancelled(self):
        """Test an uncancelled wait simply times out."""
        CancellationToken().wait(0)

    def test_wait_raises_when_cancelled(self):
        """Test a cancelled wait raises Interrupted."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(Interrupted):
            token.wait(10)

    def test_sigint_cancels_token(self):
        """Test the installed handler cancels the token and is removed afterwards."""
        previous = signal.getsignal(signal.SIGINT)
        token = CancellationToken()

        with cancel_on_sigint(token):
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)

        assert token.cancelled
        assert signal.getsignal(signal.SIGINT) == previous

    def test_second_sigint_reaches_previous_handler(self):
        """Test the first Ctrl-C hands SIGINT back so a second one force-quits."""
        previous = signal.getsignal(signal.SIGINT)
        token = CancellationToken()

        with cancel_on_sigint(token):
            handler = signal.getsignal(signal.SIGINT)
            handler(signal.SIGINT, None)

            assert signal.getsignal(signal.SIGINT) == previous
