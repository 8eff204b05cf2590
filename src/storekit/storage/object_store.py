from __future__ import annotations

import copy
import io
import logging
import mimetypes
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Callable

from storekit.config.object_store_config import ObjectStoreConfig
from storekit.errors import (
    BackendConnectionFailed,
    BucketCheckFailed,
    BucketCreateFailed,
    ClientNotReady,
    CopyFailed,
    DeleteFailed,
    DirectoryCreateFailed,
    DownloadFailed,
    InvalidConfiguration,
    ObjectInfoFailed,
    ObjectNotFound,
    ObjectStoreError,
    SourceNotFound,
    StorageBackendError,
    UploadFailed,
)
from storekit.logging_config import get_logger, with_context
from storekit.storage.backend import ObjectStream, PutObjectResult, StorageBackend
from storekit.storage.models import DownloadOptions, ObjectInfo, UploadOptions, UploadResult
from storekit.storage.s3_backend import S3Backend

COPY_CHUNK_SIZE = 1024 * 1024

Logger = logging.Logger | logging.LoggerAdapter
BackendFactory = Callable[[ObjectStoreConfig], StorageBackend]


def guess_content_type(file_path: str | os.PathLike) -> str:
    """Return the MIME type implied by the file extension, or "" when unknown."""
    content_type, _ = mimetypes.guess_type(str(file_path))
    return content_type or ""


def _isoformat(value: datetime | None) -> str:
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="seconds")


class ObjectStoreClient:
    """Facade over a StorageBackend bound to a default bucket.

    Every operation accepts an explicit ``bucket_name``; when omitted the
    client's current bucket is used. ``for_bucket`` returns a sub-client
    pinned to another bucket, which is the safe way to work with several
    buckets from concurrent callers.

    Failures are logged through ``logger`` (default: the ``storekit.storage.object_store``
    module logger) with ``operation``/``bucket``/``key`` attached as record extras.
    The default logger has no handler of its own; call
    ``storekit.logging_config.configure_logging`` to send it to stdout.
    """

    def __init__(
        self,
        config: ObjectStoreConfig,
        *,
        backend: StorageBackend | None = None,
        backend_factory: BackendFactory | None = None,
        logger: Logger | None = None,
    ):
        self._logger = logger or get_logger(__name__)
        if not isinstance(config, ObjectStoreConfig):
            self._log("connect").error("Invalid configuration: expected ObjectStoreConfig, got %s", type(config).__name__)
            raise InvalidConfiguration(f"Expected ObjectStoreConfig, got {type(config).__name__}.", operation="connect")

        self.config = config
        self._bucket_lock = threading.Lock()
        self._bucket_name = config.bucket_name.strip()
        self._owns_backend = backend is None
        if backend is None:
            factory = backend_factory or S3Backend
            try:
                backend = factory(config)
            except StorageBackendError as e:
                self._log("connect").error("Failed to create storage backend: endpoint=%s error=%s", config.endpoint, e)
                raise BackendConnectionFailed(operation="connect") from e
        self._backend: StorageBackend | None = backend

        if self._bucket_name:
            try:
                self.ensure_bucket()
            except ObjectStoreError:
                self.close()
                raise

    def __enter__(self) -> "ObjectStoreClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def backend(self) -> StorageBackend | None:
        return self._backend

    @property
    def bucket_name(self) -> str:
        with self._bucket_lock:
            return self._bucket_name

    def set_logger(self, logger: Logger) -> None:
        self._logger = logger

    def close(self) -> None:
        backend, self._backend = self._backend, None
        if backend is not None and self._owns_backend:
            backend.close()

    def _log(self, operation: str | None, bucket: str | None = None, key: str | None = None) -> logging.LoggerAdapter:
        context = {"operation": operation, "bucket": bucket, "key": key}
        return with_context(self._logger, **{name: value for name, value in context.items() if value})

    def _require_backend(self, operation: str) -> StorageBackend:
        backend = self._backend
        if backend is None:
            self._log(operation).error("Client not ready")
            raise ClientNotReady(operation=operation)
        return backend

    def _bucket(self, bucket_name: str | None = None, operation: str | None = None) -> str:
        if bucket_name:
            return bucket_name
        with self._bucket_lock:
            bucket = self._bucket_name
        if not bucket:
            self._log(operation).error("No bucket selected")
            raise InvalidConfiguration(
                "No bucket selected; pass bucket_name or call set_bucket().", operation=operation
            )
        return bucket

    def ensure_bucket(self, bucket_name: str | None = None) -> None:
        backend = self._require_backend("ensure_bucket")
        bucket = self._bucket(bucket_name, "ensure_bucket")
        try:
            exists = backend.bucket_exists(bucket)
        except StorageBackendError as e:
            self._log("ensure_bucket", bucket).error("Failed to check bucket existence: %s", e)
            raise BucketCheckFailed(operation="ensure_bucket", bucket=bucket) from e
        if exists:
            return

        region = self.config.resolved_region
        try:
            backend.create_bucket(bucket, region)
        except StorageBackendError as e:
            self._log("ensure_bucket", bucket).error("Failed to create bucket: region=%s error=%s", region, e)
            raise BucketCreateFailed(operation="ensure_bucket", bucket=bucket) from e
        self._log("ensure_bucket", bucket).info("Created bucket: region=%s", region)

    def set_bucket(self, bucket_name: str) -> None:
        """Verify (creating if needed) ``bucket_name`` and make it the current bucket.

        The switch only happens once the bucket is known to exist, so a failed
        switch leaves the previous bucket selected.
        """
        if not bucket_name or not bucket_name.strip():
            self._log("set_bucket").error("Empty bucket name")
            raise InvalidConfiguration("Bucket name must be a non-empty string.", operation="set_bucket")
        self.ensure_bucket(bucket_name)
        with self._bucket_lock:
            self._bucket_name = bucket_name

    def for_bucket(self, bucket_name: str) -> "ObjectStoreClient":
        if not bucket_name or not bucket_name.strip():
            self._log("for_bucket").error("Empty bucket name")
            raise InvalidConfiguration("Bucket name must be a non-empty string.", operation="for_bucket")
        self.ensure_bucket(bucket_name)
        bound = copy.copy(self)
        bound._bucket_lock = threading.Lock()
        bound._bucket_name = bucket_name
        bound._owns_backend = False
        return bound

    # Uploads

    def upload_file(
        self,
        key: str,
        file_path: str | os.PathLike,
        options: UploadOptions | None = None,
        bucket_name: str | None = None,
    ) -> UploadResult:
        backend = self._require_backend("upload_file")
        bucket = self._bucket(bucket_name, "upload_file")
        path = Path(file_path)
        if not path.is_file() or not os.access(path, os.R_OK):
            self._log("upload_file", bucket, key).error("Upload source not found: path=%s", path)
            raise SourceNotFound(f"Upload source not found: {str(path)!r}", operation="upload_file", bucket=bucket, key=key)

        try:
            source = path.open("rb")
        except OSError as e:
            self._log("upload_file", bucket, key).error("Upload source unreadable: path=%s error=%s", path, e)
            raise SourceNotFound(operation="upload_file", bucket=bucket, key=key) from e
        with source:
            size = os.fstat(source.fileno()).st_size
            return self._put(backend, "upload_file", bucket, key, source, size, options)

    def upload_stream(
        self,
        key: str,
        stream: BinaryIO,
        size: int,
        options: UploadOptions | None = None,
        bucket_name: str | None = None,
    ) -> UploadResult:
        backend = self._require_backend("upload_stream")
        bucket = self._bucket(bucket_name, "upload_stream")
        if size < 0:
            self._log("upload_stream", bucket, key).error("Invalid stream size: size=%s", size)
            raise UploadFailed(f"Stream size must be >= 0, got {size}", operation="upload_stream", bucket=bucket, key=key)
        return self._put(backend, "upload_stream", bucket, key, stream, size, options)

    def upload_bytes(
        self,
        key: str,
        data: bytes,
        options: UploadOptions | None = None,
        bucket_name: str | None = None,
    ) -> UploadResult:
        return self.upload_stream(key, io.BytesIO(data), len(data), options, bucket_name)

    def _put(
        self,
        backend: StorageBackend,
        operation: str,
        bucket: str,
        key: str,
        body: BinaryIO,
        size: int,
        options: UploadOptions | None,
    ) -> UploadResult:
        options = options or UploadOptions()
        content_type = options.content_type or None
        metadata = dict(options.metadata) if options.metadata is not None else None
        try:
            result: PutObjectResult = backend.put_object(bucket, key, body, size, content_type, metadata)
        except StorageBackendError as e:
            self._log(operation, bucket, key).error("Failed to upload object: %s", e)
            raise UploadFailed(operation=operation, bucket=bucket, key=key) from e

        return UploadResult(
            etag=result.etag,
            version_id=result.version_id or "",
            size=result.size,
            last_modified=_isoformat(result.last_modified),
        )

    # Downloads

    def download_file(
        self,
        key: str,
        file_path: str | os.PathLike,
        options: DownloadOptions | None = None,
        bucket_name: str | None = None,
    ) -> None:
        backend = self._require_backend("download_file")
        bucket = self._bucket(bucket_name, "download_file")
        destination = Path(file_path)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._log("download_file", bucket, key).error("Failed to create directory: path=%s error=%s", destination.parent, e)
            raise DirectoryCreateFailed(operation="download_file", bucket=bucket, key=key) from e

        version_id = options.version_id if options else None
        try:
            backend.download_file(bucket, key, str(destination), version_id or None)
        except StorageBackendError as e:
            self._log("download_file", bucket, key).error("Failed to download object: path=%s error=%s", destination, e)
            raise DownloadFailed(operation="download_file", bucket=bucket, key=key) from e

    def download_to_stream(
        self,
        key: str,
        sink: BinaryIO,
        options: DownloadOptions | None = None,
        bucket_name: str | None = None,
    ) -> int:
        """Copy the object into ``sink`` and return the number of bytes written."""
        backend = self._require_backend("download_to_stream")
        bucket = self._bucket(bucket_name, "download_to_stream")
        return self._stream_object(backend, "download_to_stream", bucket, key, sink, options)

    def download_bytes(
        self,
        key: str,
        options: DownloadOptions | None = None,
        bucket_name: str | None = None,
    ) -> bytes:
        backend = self._require_backend("download_bytes")
        bucket = self._bucket(bucket_name, "download_bytes")
        buffer = io.BytesIO()
        self._stream_object(backend, "download_bytes", bucket, key, buffer, options)
        return buffer.getvalue()

    def _stream_object(
        self,
        backend: StorageBackend,
        operation: str,
        bucket: str,
        key: str,
        sink: BinaryIO,
        options: DownloadOptions | None,
    ) -> int:
        version_id = options.version_id if options else None
        try:
            stream: ObjectStream = backend.get_object(bucket, key, version_id or None)
        except StorageBackendError as e:
            self._log(operation, bucket, key).error("Failed to get object: %s", e)
            raise DownloadFailed(operation=operation, bucket=bucket, key=key) from e

        copied = 0
        try:
            while True:
                chunk = stream.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                sink.write(chunk)
                copied += len(chunk)
        except (StorageBackendError, OSError) as e:
            self._log(operation, bucket, key).error("Failed to copy object data: copied=%s error=%s", copied, e)
            raise CopyFailed(operation=operation, bucket=bucket, key=key) from e
        finally:
            stream.close()
        return copied

    # Metadata, existence, deletion

    def object_exists(self, key: str, bucket_name: str | None = None) -> bool:
        backend = self._require_backend("object_exists")
        bucket = self._bucket(bucket_name, "object_exists")
        try:
            backend.stat_object(bucket, key)
        except ObjectNotFound:
            return False
        except StorageBackendError as e:
            self._log("object_exists", bucket, key).error("Failed to stat object: %s", e)
            raise
        return True

    def get_object_info(self, key: str, bucket_name: str | None = None) -> ObjectInfo:
        backend = self._require_backend("get_object_info")
        bucket = self._bucket(bucket_name, "get_object_info")
        try:
            stat = backend.stat_object(bucket, key)
        except StorageBackendError as e:
            self._log("get_object_info", bucket, key).error("Failed to get object info: %s", e)
            raise ObjectInfoFailed(operation="get_object_info", bucket=bucket, key=key) from e

        return ObjectInfo(
            key=key,
            size=stat.size,
            last_modified=_isoformat(stat.last_modified),
            etag=stat.etag,
            content_type=stat.content_type,
            metadata=dict(stat.metadata),
        )

    def delete_object(self, key: str, bucket_name: str | None = None) -> None:
        backend = self._require_backend("delete_object")
        bucket = self._bucket(bucket_name, "delete_object")
        try:
            backend.remove_object(bucket, key)
        except StorageBackendError as e:
            self._log("delete_object", bucket, key).error("Failed to delete object: %s", e)
            raise DeleteFailed(operation="delete_object", bucket=bucket, key=key) from e
