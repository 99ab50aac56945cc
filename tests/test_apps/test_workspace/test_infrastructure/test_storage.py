"""Tests for the S3 storage backend."""

import pytest
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from server.apps.workspace.exceptions import StorageOperationError
from server.apps.workspace.infrastructure.storage import BlobRemoval, FileStorage


@pytest.fixture
def storage(mock_s3):
    """Storage backend talking to the mocked bucket."""
    return default_storage


def test_remove_blob_deleted(storage):
    """Test an existing blob is deleted."""
    storage.save('ws/root/a.txt', ContentFile(b'data'))

    assert storage.remove_blob('ws/root/a.txt') == BlobRemoval.DELETED
    assert not storage.exists('ws/root/a.txt')


def test_remove_blob_not_found(storage):
    """Test an absent blob is reported, not raised."""
    assert storage.remove_blob('ws/root/missing.txt') == BlobRemoval.NOT_FOUND


def test_remove_blob_error(storage, monkeypatch):
    """Test storage failures surface as StorageOperationError."""
    storage.save('ws/root/a.txt', ContentFile(b'data'))

    def failing_delete(self, name):
        raise ConnectionError('storage unreachable')

    monkeypatch.setattr(FileStorage, 'delete', failing_delete)

    with pytest.raises(StorageOperationError, match='blob delete failed'):
        storage.remove_blob('ws/root/a.txt')


def test_copy_object(storage):
    """Test a server-side copy keeps the source."""
    storage.save('ws/root/source.txt', ContentFile(b'data'))

    storage.copy_object('ws/root/source.txt', 'other/root/copy.txt')

    assert storage.exists('ws/root/source.txt')
    with storage.open('other/root/copy.txt') as copied:
        assert copied.read() == b'data'


def test_copy_missing_object(storage):
    """Test copying an absent blob fails."""
    with pytest.raises(StorageOperationError, match='blob copy failed'):
        storage.copy_object('ws/root/missing.txt', 'ws/root/copy.txt')


def test_rollback_upload_swallows_errors(storage, monkeypatch):
    """Test rollback failures are logged, not raised."""
    def failing_delete(self, name):
        raise ConnectionError('storage unreachable')

    monkeypatch.setattr(FileStorage, 'delete', failing_delete)

    storage.rollback_upload('ws/root/a.txt')


def test_download_url(storage):
    """Test presigned URLs point at the blob."""
    storage.save('ws/root/a.txt', ContentFile(b'data'))

    url = storage.download_url('ws/root/a.txt', expire=60)

    assert 'ws/root/a.txt' in url
