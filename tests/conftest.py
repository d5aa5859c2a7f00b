"""
Shared fixtures: in-memory S3, scripted engines and template helpers.
"""

import threading
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from stacklift.packaging import S3Uploader
from stacklift.stack import Engine, StackEvent


class FakeS3Client:
    """Thread-safe in-memory stand-in for the boto3 S3 client calls we use."""

    def __init__(self, endpoint_url: str = "https://s3.eu-west-1.amazonaws.com"):
        self.meta = SimpleNamespace(endpoint_url=endpoint_url)
        self.objects: dict[tuple[str, str], bytes] = {}
        self.heads: list[str] = []
        self.puts: list[str] = []
        self.fail_with: dict[str, Exception] = {}
        self._lock = threading.Lock()

    def head_object(self, Bucket, Key):
        with self._lock:
            self.heads.append(Key)
        if "head_object" in self.fail_with:
            raise self.fail_with["head_object"]
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {"ETag": '"cached"', "ContentLength": len(self.objects[(Bucket, Key)])}

    def put_object(self, Bucket, Key, Body, ContentLength, ContentMD5):
        if "put_object" in self.fail_with:
            raise self.fail_with["put_object"]
        with self._lock:
            self.puts.append(Key)
            self.objects[(Bucket, Key)] = Body
        return {"ETag": '"uploaded"'}


class ScriptedEngine(Engine):
    """Engine replaying a fixed list of items for every request."""

    def __init__(self, items):
        self.items = list(items)
        self.requests = []
        self.closed = False

    def submit(self, request, token):
        self.requests.append(request)
        try:
            for item in self.items:
                yield item
        finally:
            self.closed = True


class FakeBackend:
    """Backend handing out a FakeS3Client and a ScriptedEngine."""

    def __init__(self, engine, s3=None):
        self._engine = engine
        self.s3 = s3 or FakeS3Client()
        self.configs = []

    def engine(self, config):
        self.configs.append(config)
        return self._engine

    def uploader(self, config):
        if not config.s3_bucket:
            return None
        return S3Uploader(self.s3, config.s3_bucket, config.s3_prefix)


def make_event(
    logical_id="MyStack",
    status="CREATE_IN_PROGRESS",
    resource_type="AWS::CloudFormation::Stack",
    physical_id="arn:aws:cloudformation:eu-west-1:123456789012:stack/MyStack/1",
    reason=None,
    event_id=None,
):
    return StackEvent(
        logical_resource_id=logical_id,
        resource_type=resource_type,
        status=status,
        timestamp=datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc),
        physical_resource_id=physical_id,
        status_reason=reason,
        event_id=event_id,
    )


@pytest.fixture
def fake_s3():
    """Return an empty in-memory S3 client."""
    return FakeS3Client()


@pytest.fixture
def event_factory():
    """Return the StackEvent builder."""
    return make_event


@pytest.fixture
def scripted_engine():
    """Return a factory for engines replaying the given items."""
    return ScriptedEngine


@pytest.fixture
def fake_backend():
    """Return a factory for backends wrapping an engine."""
    return FakeBackend


@pytest.fixture
def lambda_project(tmp_path):
    """Write a template with one Lambda function pointing at a local directory."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "index.py").write_text("def handler(event, context):\n    return event\n")
    (src / "util.py").write_text("VALUE = 1\n")

    template = tmp_path / "my-stack.yaml"
    template.write_text(
        "AWSTemplateFormatVersion: '2010-09-09'\n"
        "Resources:\n"
        "  Fn:\n"
        "    Type: AWS::Lambda::Function\n"
        "    Properties:\n"
        "      Runtime: python3.12\n"
        "      Handler: index.handler\n"
        "      Role: !GetAtt Role.Arn\n"
        "      Code: src\n"
        "Outputs:\n"
        "  FunctionName:\n"
        "    Value: !Ref Fn\n"
    )
    return template
