from __future__ import annotations

from email.utils import parsedate_to_datetime
from typing import Any, BinaryIO

import boto3
from boto3.exceptions import Boto3Error
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from storekit.config.object_store_config import DEFAULT_REGION, ObjectStoreConfig
from storekit.errors import ObjectNotFound, StorageBackendError
from storekit.logging_config import get_logger
from storekit.storage.backend import ObjectStat, PutObjectResult

logger = get_logger(__name__)

BUCKET_NOT_FOUND_CODES = {"404", "NoSuchBucket", "NotFound"}
OBJECT_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_TRANSPORT_ERRORS = (ClientError, BotoCoreError, Boto3Error)


def _error_code(exc: Exception) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


def _translate(exc: Exception, action: str, bucket: str, key: str | None = None) -> StorageBackendError:
    code = _error_code(exc)
    target = f"{bucket}/{key}" if key else bucket
    message = f"{action} failed for {target!r}: {exc}"
    if key and code in OBJECT_NOT_FOUND_CODES:
        return ObjectNotFound(message, code=code)
    return StorageBackendError(message, code=code)


def _strip_etag(etag: str | None) -> str:
    return (etag or "").strip('"')


class S3ObjectStream:
    """Wraps a botocore StreamingBody so read failures surface as StorageBackendError."""

    def __init__(self, body: Any, bucket: str, key: str):
        self._body = body
        self._bucket = bucket
        self._key = key

    def read(self, amt: int | None = None) -> bytes:
        try:
            return self._body.read(amt)
        except BotoCoreError as e:
            raise _translate(e, "read_object", self._bucket, self._key) from e

    def close(self) -> None:
        self._body.close()


class S3Backend:
    def __init__(self, config: ObjectStoreConfig):
        self.config = config
        client_config = Config(
            signature_version="s3v4",
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            max_pool_connections=config.max_pool_connections,
            s3={"addressing_style": "path"},
        )
        try:
            self.client = boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                region_name=config.resolved_region,
                aws_access_key_id=config.access_key,
                aws_secret_access_key=config.secret_key,
                use_ssl=config.use_ssl,
                config=client_config,
            )
        except (ValueError, BotoCoreError) as e:
            # boto3 raises ValueError for a malformed endpoint URL.
            raise StorageBackendError(f"Cannot create S3 client for {config.endpoint_url!r}: {e}") from e

    def bucket_exists(self, bucket: str) -> bool:
        try:
            self.client.head_bucket(Bucket=bucket)
            return True
        except ClientError as e:
            if _error_code(e) in BUCKET_NOT_FOUND_CODES:
                return False
            raise _translate(e, "head_bucket", bucket) from e
        except (BotoCoreError, Boto3Error) as e:
            raise _translate(e, "head_bucket", bucket) from e

    def create_bucket(self, bucket: str, region: str) -> None:
        params: dict[str, Any] = {"Bucket": bucket}
        if region and region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self.client.create_bucket(**params)
        except ClientError as e:
            if _error_code(e) == "BucketAlreadyOwnedByYou":
                logger.info("Bucket already owned by caller: bucket=%s", bucket)
                return
            raise _translate(e, "create_bucket", bucket) from e
        except (BotoCoreError, Boto3Error) as e:
            raise _translate(e, "create_bucket", bucket) from e

    def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        size: int,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutObjectResult:
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body, "ContentLength": size}
        if content_type:
            params["ContentType"] = content_type
        if metadata is not None:
            params["Metadata"] = metadata
        try:
            response = self.client.put_object(**params)
        except _TRANSPORT_ERRORS as e:
            raise _translate(e, "put_object", bucket, key) from e

        headers = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
        raw_last_modified = headers.get("last-modified")
        return PutObjectResult(
            etag=_strip_etag(response.get("ETag")),
            version_id=response.get("VersionId"),
            size=size,
            last_modified=parsedate_to_datetime(raw_last_modified) if raw_last_modified else None,
        )

    def get_object(self, bucket: str, key: str, version_id: str | None = None) -> S3ObjectStream:
        params: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if version_id:
            params["VersionId"] = version_id
        try:
            response = self.client.get_object(**params)
        except _TRANSPORT_ERRORS as e:
            raise _translate(e, "get_object", bucket, key) from e
        return S3ObjectStream(response["Body"], bucket, key)

    def download_file(self, bucket: str, key: str, file_path: str, version_id: str | None = None) -> None:
        extra_args = {"VersionId": version_id} if version_id else None
        try:
            self.client.download_file(bucket, key, file_path, ExtraArgs=extra_args)
        except _TRANSPORT_ERRORS as e:
            raise _translate(e, "download_file", bucket, key) from e

    def stat_object(self, bucket: str, key: str) -> ObjectStat:
        try:
            response = self.client.head_object(Bucket=bucket, Key=key)
        except _TRANSPORT_ERRORS as e:
            raise _translate(e, "head_object", bucket, key) from e
        return ObjectStat(
            size=int(response.get("ContentLength") or 0),
            last_modified=response.get("LastModified"),
            etag=_strip_etag(response.get("ETag")),
            content_type=response.get("ContentType") or "",
            metadata=dict(response.get("Metadata") or {}),
        )

    def remove_object(self, bucket: str, key: str) -> None:
        try:
            self.client.delete_object(Bucket=bucket, Key=key)
        except _TRANSPORT_ERRORS as e:
            raise _translate(e, "delete_object", bucket, key) from e

    def close(self) -> None:
        self.client.close()
