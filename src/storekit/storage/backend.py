"""StorageBackend capability consumed by ObjectStoreClient.

Implementations talk to the remote service; the client only relies on the
methods below. Failures must be raised as StorageBackendError, and a missing
key on stat_object as ObjectNotFound.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Protocol


@dataclass(frozen=True, slots=True)
class PutObjectResult:
    etag: str
    version_id: str | None
    size: int
    last_modified: datetime | None = None


@dataclass(frozen=True, slots=True)
class ObjectStat:
    size: int
    last_modified: datetime | None
    etag: str
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)


class ObjectStream(Protocol):
    def read(self, amt: int | None = None) -> bytes: ...

    def close(self) -> None: ...


class StorageBackend(Protocol):
    def bucket_exists(self, bucket: str) -> bool: ...

    def create_bucket(self, bucket: str, region: str) -> None: ...

    def put_object(
        self,
        bucket: str,
        key: str,
        body: BinaryIO,
        size: int,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> PutObjectResult: ...

    def get_object(self, bucket: str, key: str, version_id: str | None = None) -> ObjectStream: ...

    def download_file(self, bucket: str, key: str, file_path: str, version_id: str | None = None) -> None: ...

    def stat_object(self, bucket: str, key: str) -> ObjectStat: ...

    def remove_object(self, bucket: str, key: str) -> None: ...

    def close(self) -> None: ...
