from __future__ import annotations


class StorageBackendError(RuntimeError):
    """Raised by StorageBackend implementations; ``code`` is the backend error code."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ObjectNotFound(StorageBackendError):
    pass


class ObjectStoreError(RuntimeError):
    """Base class for every failure raised by ObjectStoreClient.

    Carries the failing operation plus the bucket/key it addressed so log
    lines and callers can tell which call broke. The backend error, when
    there is one, is chained as ``__cause__``.
    """

    default_message = "object store operation failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        operation: str | None = None,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        self.operation = operation
        self.bucket = bucket
        self.key = key
        super().__init__(message or self.default_message)

    def __str__(self) -> str:
        message = super().__str__()
        context = [
            f"{name}={value!r}"
            for name, value in (("operation", self.operation), ("bucket", self.bucket), ("key", self.key))
            if value
        ]
        if context:
            message = f"{message} ({' '.join(context)})"
        if self.__cause__ is not None:
            message = f"{message}: {self.__cause__}"
        return message


class InvalidConfiguration(ObjectStoreError, ValueError):
    default_message = "invalid object store configuration"


class ClientNotReady(ObjectStoreError):
    default_message = "object store client has no backend connection"


class BackendConnectionFailed(ObjectStoreError):
    default_message = "failed to connect to object store backend"


class BucketCheckFailed(ObjectStoreError):
    default_message = "failed to check bucket existence"


class BucketCreateFailed(ObjectStoreError):
    default_message = "failed to create bucket"


class SourceNotFound(ObjectStoreError, FileNotFoundError):
    default_message = "upload source file not found"


class DirectoryCreateFailed(ObjectStoreError):
    default_message = "failed to create destination directory"


class UploadFailed(ObjectStoreError):
    default_message = "object upload failed"


class DownloadFailed(ObjectStoreError):
    default_message = "object download failed"


class CopyFailed(ObjectStoreError):
    default_message = "failed to copy object data"


class ObjectInfoFailed(ObjectStoreError):
    default_message = "failed to get object info"

    @property
    def not_found(self) -> bool:
        return isinstance(self.__cause__, ObjectNotFound)


class DeleteFailed(ObjectStoreError):
    default_message = "failed to delete object"
