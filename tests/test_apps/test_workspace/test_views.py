"""Tests for workspace HTTP views."""

import io
import zipfile

import pytest
from django.urls import reverse


@pytest.mark.django_db
class TestDownloadFolderArchive:
    """Tests for the folder archive download."""

    def test_login_required(self, client, make_folder):
        """Test anonymous users are redirected to login."""
        folder = make_folder('docs')

        response = client.get(reverse('folder-archive', args=[folder.id]))

        assert response.status_code == 302
        assert '/admin/login/' in response['Location']

    def test_zip_attachment(self, client, user, mock_s3, make_folder, make_file):
        """Test the archive is served as a zip attachment."""
        folder = make_folder('docs')
        make_file('a.txt', folder=folder, content=b'hello', blob=mock_s3)
        client.force_login(user)

        response = client.get(reverse('folder-archive', args=[folder.id]))

        assert response.status_code == 200
        assert response['Content-Type'] == 'application/zip'
        assert response['Content-Disposition'] == 'attachment; filename="docs.zip"'
        content = b''.join(response.streaming_content)
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            assert archive.read('a.txt') == b'hello'

    def test_unicode_filename(self, client, user, mock_s3, make_folder):
        """Test non-ASCII names are RFC 6266 encoded."""
        folder = make_folder('Résumés')
        client.force_login(user)

        response = client.get(reverse('folder-archive', args=[folder.id]))

        assert "filename*=utf-8''R%C3%A9sum%C3%A9s.zip" in (
            response['Content-Disposition']
        )

    def test_foreign_folder_not_found(
        self,
        client,
        user,
        other_workspace,
        make_folder,
    ):
        """Test folders of other users are hidden."""
        foreign = make_folder('secret', owner=other_workspace)
        client.force_login(user)

        response = client.get(reverse('folder-archive', args=[foreign.id]))

        assert response.status_code == 404

    def test_post_not_allowed(self, client, user, make_folder):
        """Test only GET is accepted."""
        folder = make_folder('docs')
        client.force_login(user)

        response = client.post(reverse('folder-archive', args=[folder.id]))

        assert response.status_code == 405
