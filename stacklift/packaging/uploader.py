"""
Content-addressed uploads to S3.

Objects are stored at `prefix/<md5><extension>`. A key is probed with
HEAD before uploading and skipped when present, so each distinct archive is
transferred at most once across runs and machines. Keys are immutable once
written, so concurrent runs can't conflict.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import quote

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    CredentialRetrievalError,
    NoCredentialsError,
    PartialCredentialsError,
)

from stacklift.cancellation import CancellationToken
from stacklift.errors import UploadError, UploadNetworkError, UploadPermissionDenied
from stacklift.packaging.archive import PackagedAsset
from stacklift.template.nodes import Position

LOG = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_DENIED_CODES = {
    "403",
    "AccessDenied",
    "Forbidden",
    "AllAccessDisabled",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
}
_CREDENTIAL_ERRORS = (NoCredentialsError, PartialCredentialsError, CredentialRetrievalError)


@dataclass(frozen=True)
class UploadRecord:
    """
    Where a packaged asset lives in S3.

    `existed` is only meaningful once the upload has run; a record from
    `S3Uploader.locate` always reports False.
    """

    bucket: str
    key: str
    url: str
    existed: bool = False
    etag: str | None = None

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


def object_key(prefix: str | None, asset: PackagedAsset) -> str:
    """Derive the object key for `asset` under `prefix`."""
    prefix = (prefix or "").strip("/")
    if not prefix:
        return asset.object_name
    return f"{prefix}/{asset.object_name}"


class S3Uploader:
    """
    Uploads packaged assets to one bucket and prefix.

    The boto3 client is shared between worker threads; boto3 clients are
    thread-safe.

    Example:
        uploader = S3Uploader(session.client("s3"), "my-artifacts", "lambdas")
        record = uploader.upload(package_directory("src/handler"))
        print(record.uri)
    """

    def __init__(self, client: Any, bucket: str, prefix: str | None = None):
        """
        Initialize the uploader.

        Args:
            client: boto3 S3 client
            bucket: Target bucket name
            prefix: Optional key prefix
        """
        self.client = client
        self.bucket = bucket
        self.prefix = prefix

    def object_url(self, key: str) -> str:
        """Path-style HTTPS URL for `key`, as accepted by TemplateURL."""
        endpoint = self.client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{self.bucket}/{quote(key)}"

    def locate(self, asset: PackagedAsset) -> UploadRecord:
        """Where `asset` will be stored, without any remote call."""
        key = object_key(self.prefix, asset)
        return UploadRecord(bucket=self.bucket, key=key, url=self.object_url(key))

    def upload(
        self, asset: PackagedAsset, token: CancellationToken | None = None
    ) -> UploadRecord:
        """
        Ensure `asset` exists at its content-addressed key.

        Args:
            asset: Packaged asset
            token: Checked before each remote call

        Returns:
            UploadRecord with `existed=True` when no data was transferred

        Raises:
            UploadPermissionDenied: If S3 denies access to the key
            UploadNetworkError: For transport or other service failures
            Interrupted: If the run is cancelled
        """
        key = object_key(self.prefix, asset)

        if token is not None:
            token.raise_if_cancelled()
        etag = self._head(key)
        if etag is not None:
            LOG.debug("s3://%s/%s already exists, skipping upload", self.bucket, key)
            return UploadRecord(
                bucket=self.bucket, key=key, existed=True, url=self.object_url(key), etag=etag
            )

        if token is not None:
            token.raise_if_cancelled()
        LOG.debug("uploading %d bytes to s3://%s/%s", asset.size, self.bucket, key)
        try:
            response = self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=asset.data,
                ContentLength=asset.size,
                ContentMD5=asset.content_md5,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._error(key, e) from e

        return UploadRecord(
            bucket=self.bucket,
            key=key,
            existed=False,
            url=self.object_url(key),
            etag=response.get("ETag"),
        )

    def upload_all(
        self,
        assets: Mapping[Position, PackagedAsset],
        token: CancellationToken | None = None,
        max_workers: int = 8,
    ) -> dict[Position, UploadRecord]:
        """
        Upload many assets concurrently.

        Each distinct key is uploaded once even if several positions share
        it. Results are joined back to every originating position regardless
        of completion order. The first failure cancels uploads that haven't
        started and is re-raised once running ones finish.

        Returns:
            Upload record for every position in `assets`
        """
        if not assets:
            return {}

        unique: dict[str, PackagedAsset] = {}
        key_by_position: dict[Position, str] = {}
        for position, asset in assets.items():
            key = object_key(self.prefix, asset)
            unique.setdefault(key, asset)
            key_by_position[position] = key

        records_by_key: dict[str, UploadRecord] = {}
        with ThreadPoolExecutor(
            max_workers=min(max_workers, len(unique)), thread_name_prefix="stacklift-upload"
        ) as pool:
            futures = {pool.submit(self.upload, asset, token): key for key, asset in unique.items()}
            try:
                for future in as_completed(futures):
                    records_by_key[futures[future]] = future.result()
                    if token is not None:
                        token.raise_if_cancelled()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        uploaded = sum(1 for record in records_by_key.values() if not record.existed)
        LOG.info("%d asset(s) uploaded, %d already present",
                 uploaded, len(records_by_key) - uploaded)
        return {position: records_by_key[key] for position, key in key_by_position.items()}

    def _head(self, key: str) -> str | None:
        try:
            response = self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            raise self._error(key, e) from e
        except BotoCoreError as e:
            raise self._error(key, e) from e
        return response.get("ETag") or ""

    def _error(self, key: str, error: Exception) -> UploadError:
        if isinstance(error, ClientError) and _error_code(error) in _DENIED_CODES:
            return UploadPermissionDenied(self.bucket, key, "access denied")
        if isinstance(error, _CREDENTIAL_ERRORS):
            return UploadPermissionDenied(self.bucket, key, str(error))
        return UploadNetworkError(self.bucket, key, str(error))


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))
