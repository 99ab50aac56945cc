"""Tests for workspace models."""

import pytest
from django.db.models import RestrictedError

from server.apps.workspace.models import File, Folder, Workspace


@pytest.mark.django_db
def test_workspace_provisioned_with_user(user):
    """Test a new user gets exactly one workspace."""
    assert Workspace.objects.filter(user=user).count() == 1
    assert str(user.workspace) == 'testuser:My Files'


@pytest.mark.django_db
def test_workspace_cascades_with_user(user, make_folder, make_file):
    """Test deleting the user removes the whole workspace."""
    folder = make_folder('docs')
    make_file('a.txt', folder=folder)

    user.delete()

    assert not Workspace.objects.exists()
    assert not Folder.objects.exists()
    assert not File.objects.exists()


@pytest.mark.django_db
def test_folder_delete_is_restricted(make_folder):
    """Test folders with children cannot be removed directly."""
    parent = make_folder('parent')
    make_folder('child', parent=parent)

    with pytest.raises(RestrictedError):
        parent.delete()


@pytest.mark.django_db
def test_folder_sharing_state(make_folder, make_link):
    """Test is_shared follows the link's activation."""
    folder = make_folder('docs')
    assert not folder.is_shared()
    assert folder.is_root_level()

    folder.link = make_link('docs-link', is_active=True)
    folder.save()

    assert folder.is_shared()
    assert str(folder.link) == 'docs-link (active)'


@pytest.mark.django_db
def test_file_helpers(make_file):
    """Test extension and attribution helpers."""
    file_instance = make_file('report.PDF')

    assert str(file_instance) == 'report.PDF'
    assert file_instance.get_extension() == 'pdf'
    assert not file_instance.is_external_upload()
