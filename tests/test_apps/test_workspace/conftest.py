"""Shared fixtures for workspace app tests."""

import boto3
import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.workspace.infrastructure.metadata import build_storage_path
from server.apps.workspace.models import File, Folder, Link

User = get_user_model()

BUCKET_NAME = 'workspace-files'


@pytest.fixture
def user(db):
    """Create test user (workspace is provisioned by signal).

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def workspace(user):
    """Workspace of the main test user."""
    return user.workspace


@pytest.fixture
def other_workspace(other_user):
    """Workspace of the second test user."""
    return other_user.workspace


@pytest.fixture
def mock_s3():
    """Mock S3 service with the workspace bucket.

    Yields:
        boto3 S3 resource with the workspace bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=BUCKET_NAME)
        yield conn


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')


@pytest.fixture
def make_folder(workspace):
    """Factory creating folder rows directly, bypassing validation.

    Returns:
        Callable ``(name, parent=None, owner=None) -> Folder``.
    """
    def _make_folder(name, parent=None, owner=None):
        return Folder.objects.create(
            workspace=owner or workspace,
            parent=parent,
            name=name,
        )

    return _make_folder


@pytest.fixture
def make_file(workspace):
    """Factory creating file rows, optionally with a blob in the bucket.

    Returns:
        Callable ``(name, folder=None, content=b'...', blob=None, owner=None)``.
        Pass the ``mock_s3`` resource as ``blob`` to upload the content.
    """
    def _make_file(name, folder=None, content=b'content', blob=None, owner=None):
        owner = owner or workspace
        folder_id = folder.id if folder is not None else None
        storage_path = build_storage_path(owner.id, folder_id, name)
        if blob is not None:
            blob.Object(BUCKET_NAME, storage_path).put(Body=content)
        return File.objects.create(
            workspace=owner,
            folder=folder,
            name=name,
            size_bytes=len(content),
            mime_type='application/octet-stream',
            checksum_sha256='a' * 64,
            storage_path=storage_path,
        )

    return _make_file


@pytest.fixture
def make_link(workspace):
    """Factory creating unbound links.

    Returns:
        Callable ``(slug, owner=None, is_active=False) -> Link``.
    """
    def _make_link(slug, owner=None, is_active=False):
        return Link.objects.create(
            workspace=owner or workspace,
            slug=slug,
            title=slug,
            is_active=is_active,
        )

    return _make_link
