"""Tests for the boto3-backed StorageBackend."""

from __future__ import annotations

import io
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from storekit.config.object_store_config import ObjectStoreConfig
from storekit.errors import ObjectNotFound, StorageBackendError
from storekit.storage.s3_backend import S3Backend


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture()
def s3_config():
    return ObjectStoreConfig(
        endpoint="localhost:9000",
        access_key="test-key",
        secret_key="test-secret",
        region="eu-central-1",
        connect_timeout=3,
        read_timeout=30,
    )


@pytest.fixture()
def mock_s3():
    mock_client = MagicMock()
    with patch("storekit.storage.s3_backend.boto3.client", return_value=mock_client) as factory:
        mock_client.factory = factory
        yield mock_client


@pytest.fixture()
def backend(mock_s3, s3_config):
    return S3Backend(s3_config)


class TestS3BackendConstruction:
    def test_builds_client_from_config(self, backend, mock_s3):
        args, kwargs = mock_s3.factory.call_args
        assert args == ("s3",)
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["region_name"] == "eu-central-1"
        assert kwargs["aws_access_key_id"] == "test-key"
        assert kwargs["aws_secret_access_key"] == "test-secret"
        assert kwargs["use_ssl"] is False
        client_config = kwargs["config"]
        assert client_config.connect_timeout == 3
        assert client_config.read_timeout == 30
        assert client_config.s3 == {"addressing_style": "path"}

    def test_invalid_endpoint_is_backend_error(self):
        config = ObjectStoreConfig(endpoint="http://bad host:9000", access_key="ak", secret_key="sk")
        with patch("storekit.storage.s3_backend.boto3.client", side_effect=ValueError("Invalid endpoint")):
            with pytest.raises(StorageBackendError):
                S3Backend(config)


class TestBuckets:
    def test_bucket_exists(self, backend, mock_s3):
        assert backend.bucket_exists("b") is True
        mock_s3.head_bucket.assert_called_once_with(Bucket="b")

    def test_bucket_missing(self, backend, mock_s3):
        mock_s3.head_bucket.side_effect = _client_error("404", "HeadBucket")
        assert backend.bucket_exists("b") is False

    def test_bucket_check_forbidden_is_error(self, backend, mock_s3):
        mock_s3.head_bucket.side_effect = _client_error("403", "HeadBucket")
        with pytest.raises(StorageBackendError) as exc_info:
            backend.bucket_exists("b")
        assert exc_info.value.code == "403"

    def test_bucket_check_transport_error(self, backend, mock_s3):
        mock_s3.head_bucket.side_effect = EndpointConnectionError(endpoint_url="http://localhost:9000")
        with pytest.raises(StorageBackendError):
            backend.bucket_exists("b")

    def test_create_bucket_with_location(self, backend, mock_s3):
        backend.create_bucket("b", "eu-central-1")
        mock_s3.create_bucket.assert_called_once_with(
            Bucket="b", CreateBucketConfiguration={"LocationConstraint": "eu-central-1"}
        )

    def test_create_bucket_default_region_has_no_location(self, backend, mock_s3):
        backend.create_bucket("b", "us-east-1")
        mock_s3.create_bucket.assert_called_once_with(Bucket="b")

    def test_create_bucket_already_owned_is_tolerated(self, backend, mock_s3):
        mock_s3.create_bucket.side_effect = _client_error("BucketAlreadyOwnedByYou", "CreateBucket")
        backend.create_bucket("b", "us-east-1")

    def test_create_bucket_taken_by_someone_else(self, backend, mock_s3):
        mock_s3.create_bucket.side_effect = _client_error("BucketAlreadyExists", "CreateBucket")
        with pytest.raises(StorageBackendError):
            backend.create_bucket("b", "us-east-1")


class TestObjects:
    def test_put_object(self, backend, mock_s3):
        mock_s3.put_object.return_value = {
            "ETag": '"abc123"',
            "VersionId": "v1",
            "ResponseMetadata": {"HTTPHeaders": {"last-modified": "Wed, 01 May 2024 12:30:00 GMT"}},
        }
        body = io.BytesIO(b"data")

        result = backend.put_object("b", "k", body, 4, "text/plain", {"owner": "me"})

        mock_s3.put_object.assert_called_once_with(
            Bucket="b", Key="k", Body=body, ContentLength=4, ContentType="text/plain", Metadata={"owner": "me"}
        )
        assert result.etag == "abc123"
        assert result.version_id == "v1"
        assert result.size == 4
        assert result.last_modified == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    def test_put_object_without_options(self, backend, mock_s3):
        mock_s3.put_object.return_value = {"ETag": '"abc"'}
        body = io.BytesIO(b"")

        result = backend.put_object("b", "k", body, 0)

        mock_s3.put_object.assert_called_once_with(Bucket="b", Key="k", Body=body, ContentLength=0)
        assert result.version_id is None
        assert result.last_modified is None

    def test_put_object_error(self, backend, mock_s3):
        mock_s3.put_object.side_effect = _client_error("NoSuchBucket", "PutObject")
        with pytest.raises(StorageBackendError):
            backend.put_object("b", "k", io.BytesIO(b"x"), 1)

    def test_get_object_with_version(self, backend, mock_s3):
        body = MagicMock()
        body.read.return_value = b"payload"
        mock_s3.get_object.return_value = {"Body": body}

        stream = backend.get_object("b", "k", "v2")

        mock_s3.get_object.assert_called_once_with(Bucket="b", Key="k", VersionId="v2")
        assert stream.read(10) == b"payload"
        stream.close()
        body.close.assert_called_once()

    def test_stream_read_error_is_backend_error(self, backend, mock_s3):
        body = MagicMock()
        body.read.side_effect = ReadTimeoutError(endpoint_url="http://localhost:9000")
        mock_s3.get_object.return_value = {"Body": body}

        stream = backend.get_object("b", "k")
        with pytest.raises(StorageBackendError):
            stream.read(1024)

    def test_get_missing_object(self, backend, mock_s3):
        mock_s3.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
        with pytest.raises(ObjectNotFound):
            backend.get_object("b", "k")

    def test_missing_bucket_on_keyed_call_is_not_object_not_found(self, backend, mock_s3):
        mock_s3.get_object.side_effect = _client_error("NoSuchBucket", "GetObject")
        with pytest.raises(StorageBackendError) as exc_info:
            backend.get_object("b", "k")
        assert not isinstance(exc_info.value, ObjectNotFound)
        assert exc_info.value.code == "NoSuchBucket"

    def test_download_file(self, backend, mock_s3):
        backend.download_file("b", "k", "/tmp/out", None)
        mock_s3.download_file.assert_called_once_with("b", "k", "/tmp/out", ExtraArgs=None)

        backend.download_file("b", "k", "/tmp/out", "v3")
        mock_s3.download_file.assert_called_with("b", "k", "/tmp/out", ExtraArgs={"VersionId": "v3"})

    def test_stat_object(self, backend, mock_s3):
        modified = datetime(2024, 5, 1, tzinfo=timezone.utc)
        mock_s3.head_object.return_value = {
            "ContentLength": 42,
            "LastModified": modified,
            "ETag": '"etag"',
            "ContentType": "application/json",
            "Metadata": {"owner": "me"},
        }

        stat = backend.stat_object("b", "k")

        assert stat.size == 42
        assert stat.last_modified == modified
        assert stat.etag == "etag"
        assert stat.content_type == "application/json"
        assert stat.metadata == {"owner": "me"}

    def test_stat_missing_object(self, backend, mock_s3):
        mock_s3.head_object.side_effect = _client_error("404")
        with pytest.raises(ObjectNotFound) as exc_info:
            backend.stat_object("b", "k")
        assert exc_info.value.code == "404"

    def test_stat_other_error_is_not_not_found(self, backend, mock_s3):
        mock_s3.head_object.side_effect = _client_error("403")
        with pytest.raises(StorageBackendError) as exc_info:
            backend.stat_object("b", "k")
        assert not isinstance(exc_info.value, ObjectNotFound)

    def test_remove_object(self, backend, mock_s3):
        backend.remove_object("b", "k")
        mock_s3.delete_object.assert_called_once_with(Bucket="b", Key="k")

    def test_remove_object_error(self, backend, mock_s3):
        mock_s3.delete_object.side_effect = _client_error("AccessDenied", "DeleteObject")
        with pytest.raises(StorageBackendError):
            backend.remove_object("b", "k")

    def test_close(self, backend, mock_s3):
        backend.close()
        mock_s3.close.assert_called_once()
