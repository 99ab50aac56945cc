"""Tests for create / upload / list operations."""

import pytest
from django.core.files.base import ContentFile

from server.apps.workspace.exceptions import (
    ItemNotFoundError,
    TreeValidationError,
)
from server.apps.workspace.logic.file_operations import (
    _get_storage,
    create_folder,
    get_download_url,
    list_folder,
    upload_file,
)
from server.apps.workspace.logic.tree import ROOT
from server.apps.workspace.models import File


@pytest.mark.django_db
class TestCreateFolder:
    """Tests for folder creation."""

    def test_create_at_root(self, workspace):
        """Test a folder without parent lands at root level."""
        folder = create_folder(workspace, '  Projects ')

        assert folder.name == 'Projects'
        assert folder.parent is None
        assert folder.workspace == workspace

    def test_duplicate_name_gets_suffix(self, workspace):
        """Test sibling collision resolves without extension split."""
        create_folder(workspace, 'v1.2')

        folder = create_folder(workspace, 'V1.2')

        assert folder.name == 'V1.2 (1)'

    def test_create_nested(self, workspace):
        """Test nested creation under an existing folder."""
        parent = create_folder(workspace, 'parent')

        child = create_folder(workspace, 'child', parent.id)

        assert child.parent == parent

    @pytest.mark.parametrize('name', ['', '   ', 'a/b', 'a\\b', '..', 'x' * 256])
    def test_invalid_name_rejected(self, workspace, name):
        """Test invalid display names are rejected before any write."""
        with pytest.raises(TreeValidationError):
            create_folder(workspace, name)

    def test_depth_limit(self, settings, workspace):
        """Test creation below the deepest allowed level is rejected."""
        settings.WORKSPACE_MAX_FOLDER_DEPTH = 2
        top = create_folder(workspace, 'top')
        second = create_folder(workspace, 'second', top.id)

        with pytest.raises(TreeValidationError, match='maximum folder depth'):
            create_folder(workspace, 'third', second.id)

    def test_foreign_parent_rejected(self, workspace, other_workspace, make_folder):
        """Test a parent from another workspace is invalid."""
        foreign = make_folder('foreign', owner=other_workspace)

        with pytest.raises(TreeValidationError):
            create_folder(workspace, 'mine', foreign.id)

    def test_unknown_parent(self, workspace):
        """Test an unknown parent is not found."""
        with pytest.raises(ItemNotFoundError):
            create_folder(workspace, 'orphan', 'not-a-uuid')


@pytest.mark.django_db
class TestUploadFile:
    """Tests for storage-first uploads."""

    def test_upload_success(self, workspace, mock_s3, sample_file_content):
        """Test upload writes the blob and the record."""
        file_instance = upload_file(workspace, sample_file_content, 'test.txt')

        assert file_instance.name == 'test.txt'
        assert file_instance.folder is None
        assert file_instance.mime_type == 'text/plain'
        assert file_instance.size_bytes == len(b'test file content')
        assert len(file_instance.checksum_sha256) == 64
        assert file_instance.storage_path == f'{workspace.id}/root/test.txt'
        assert _get_storage().exists(file_instance.storage_path)

    def test_upload_into_folder_with_attribution(
        self,
        workspace,
        mock_s3,
        make_folder,
    ):
        """Test upload through a link keeps the uploader attribution."""
        folder = make_folder('inbox')

        file_instance = upload_file(
            workspace,
            ContentFile(b'pdf', name='scan.pdf'),
            'scan.pdf',
            folder.id,
            uploader_email='guest@example.com',
            uploader_name='Guest',
        )

        assert file_instance.folder == folder
        assert file_instance.is_external_upload()
        assert file_instance.storage_path.startswith(f'{workspace.id}/{folder.id}/')

    def test_upload_name_collision(self, workspace, mock_s3, make_file):
        """Test a taken display name gets a numbered suffix."""
        make_file('test.txt', blob=mock_s3)

        file_instance = upload_file(
            workspace,
            ContentFile(b'second', name='test.txt'),
            'test.txt',
        )

        assert file_instance.name == 'test (1).txt'

    def test_upload_orphaned_blob_collision(self, workspace, mock_s3):
        """Test a blob without record still forces a new name."""
        mock_s3.Object(
            'workspace-files',
            f'{workspace.id}/root/photo.jpg',
        ).put(Body=b'stale')

        file_instance = upload_file(
            workspace,
            ContentFile(b'fresh', name='photo.jpg'),
            'photo.jpg',
        )

        assert file_instance.name == 'photo (1).jpg'
        assert file_instance.storage_path == f'{workspace.id}/root/photo%20%281%29.jpg'

    def test_upload_rolls_back_blob_on_db_failure(
        self,
        workspace,
        mock_s3,
        monkeypatch,
        sample_file_content,
    ):
        """Test a failed record insert removes the uploaded blob."""
        def failing_create(**kwargs):
            raise RuntimeError('db down')

        monkeypatch.setattr(File.objects, 'create', failing_create)

        with pytest.raises(RuntimeError):
            upload_file(workspace, sample_file_content, 'test.txt')

        assert not _get_storage().exists(f'{workspace.id}/root/test.txt')

    def test_upload_unknown_folder(self, workspace, mock_s3, sample_file_content):
        """Test upload into a missing folder fails before storage."""
        with pytest.raises(ItemNotFoundError):
            upload_file(
                workspace,
                sample_file_content,
                'test.txt',
                '00000000-0000-0000-0000-000000000000',
            )


@pytest.mark.django_db
class TestListAndDownload:
    """Tests for navigation helpers."""

    def test_list_root(self, workspace, make_folder, make_file):
        """Test root listing returns only root-level children, sorted."""
        docs = make_folder('docs')
        make_folder('archive')
        make_folder('nested', parent=docs)
        make_file('b.txt')
        make_file('a.txt')
        make_file('inside.txt', folder=docs)

        listing = list_folder(workspace, ROOT)

        assert listing.folder is None
        assert [folder.name for folder in listing.folders] == ['archive', 'docs']
        assert [item.name for item in listing.files] == ['a.txt', 'b.txt']

    def test_list_folder(self, workspace, make_folder, make_file):
        """Test folder listing returns its direct children."""
        docs = make_folder('docs')
        make_folder('nested', parent=docs)
        make_file('inside.txt', folder=docs)

        listing = list_folder(workspace, docs.id)

        assert listing.folder == docs
        assert [folder.name for folder in listing.folders] == ['nested']
        assert [item.name for item in listing.files] == ['inside.txt']

    def test_list_foreign_folder(self, workspace, other_workspace, make_folder):
        """Test listing another workspace's folder is not found."""
        foreign = make_folder('foreign', owner=other_workspace)

        with pytest.raises(ItemNotFoundError):
            list_folder(workspace, foreign.id)

    def test_download_url(self, workspace, mock_s3, make_file):
        """Test presigned URL points at the blob."""
        file_instance = make_file('test.txt', blob=mock_s3)

        url = get_download_url(workspace, file_instance.id)

        assert 'test.txt' in url
        assert 'Expires=' in url or 'X-Amz-Expires=' in url
