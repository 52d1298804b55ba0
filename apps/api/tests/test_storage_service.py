"""Tests for the MinIO-backed storage service."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from minio.error import S3Error

from leasedoc_api.documents.errors import SignedUrlError, StorageReadError, StorageUploadError
from leasedoc_api.settings import Settings
from leasedoc_api.storage.service import StorageService

KEY = "leases/5e1a/lease-document-0123456789abcdef.pdf"


def _s3_error(code):
    return S3Error(
        code=code,
        message=code,
        resource=f"/test-bucket/{KEY}",
        request_id="req",
        host_id="host",
        response=MagicMock(),
    )


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def storage(client):
    return StorageService(settings=Settings(database_url="sqlite://", minio_bucket="test-bucket"), client=client)


class TestUpload:
    def test_put_object_with_cache_control(self, storage, client):
        assert storage.upload(KEY, b"%PDF-1.4", "application/pdf", cache_control="private, max-age=60") == KEY

        args, kwargs = client.put_object.call_args
        assert args[:2] == ("test-bucket", KEY)
        assert args[2].read() == b"%PDF-1.4"
        assert kwargs["length"] == 8
        assert kwargs["content_type"] == "application/pdf"
        assert kwargs["metadata"] == {"Cache-Control": "private, max-age=60"}

    def test_refuses_overwrite_when_asked(self, storage, client):
        with pytest.raises(StorageUploadError):
            storage.upload(KEY, b"data", overwrite=False)

        client.put_object.assert_not_called()

    def test_s3_error(self, storage, client):
        client.put_object.side_effect = _s3_error("InternalError")

        with pytest.raises(StorageUploadError):
            storage.upload(KEY, b"data")

    def test_client_unavailable(self):
        storage = StorageService(settings=Settings(database_url="sqlite://"), client=MagicMock())
        storage.client = None

        with pytest.raises(StorageUploadError):
            storage.upload(KEY, b"data")
        with pytest.raises(SignedUrlError):
            storage.signed_url(KEY)
        assert not storage.is_available()


class TestRead:
    def test_get_object(self, storage, client):
        response = client.get_object.return_value
        response.read.return_value = b"%PDF-1.4"

        assert storage.get_object(KEY) == b"%PDF-1.4"
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_missing_object(self, storage, client):
        client.get_object.side_effect = _s3_error("NoSuchKey")

        with pytest.raises(FileNotFoundError):
            storage.get_object(KEY)

    def test_read_failure(self, storage, client):
        client.get_object.side_effect = _s3_error("AccessDenied")

        with pytest.raises(StorageReadError):
            storage.get_object(KEY)

    def test_object_exists(self, storage, client):
        assert storage.object_exists(KEY)

        client.stat_object.side_effect = _s3_error("NoSuchKey")
        assert not storage.object_exists(KEY)


class TestSignedUrl:
    def test_presigned_with_ttl(self, storage, client):
        client.presigned_get_object.return_value = "https://minio.test/signed"

        assert storage.signed_url(KEY, ttl_seconds=600) == "https://minio.test/signed"
        client.presigned_get_object.assert_called_once_with("test-bucket", KEY, expires=timedelta(seconds=600))

    def test_signing_failure(self, storage, client):
        client.presigned_get_object.side_effect = ValueError("expires must be between 1 second to 7 days")

        with pytest.raises(SignedUrlError):
            storage.signed_url(KEY, ttl_seconds=0)


class TestObjectKey:
    def test_format(self):
        key = StorageService.build_object_key("5e1a-lease", "lease-document", "0123456789abcdef")

        assert key == "leases/5e1a-lease/lease-document-0123456789abcdef.pdf"

    @pytest.mark.parametrize("lease_id", ["", "../etc", "a/b", " lease"])
    def test_rejects_unsafe_segments(self, lease_id):
        with pytest.raises(ValueError):
            StorageService.build_object_key(lease_id, "lease-document", "0123456789abcdef")

    def test_rejects_unknown_extension(self):
        with pytest.raises(ValueError):
            StorageService.build_object_key("lease", "lease-document", "0123456789abcdef", extension="exe")
