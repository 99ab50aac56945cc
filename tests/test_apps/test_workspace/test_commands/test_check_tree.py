"""Tests for check_tree management command."""

from io import StringIO

import pytest
from django.core.management import CommandError, call_command

from server.apps.workspace.models import Folder, Link


@pytest.mark.django_db
class TestCheckTreeCommand:
    """Tests for check_tree management command."""

    def test_clean_tree(self, make_folder, make_file):
        """Test a sound tree reports no problems."""
        parent = make_folder('parent')
        make_folder('child', parent=parent)
        make_file('a.txt', folder=parent)

        out = StringIO()
        call_command('check_tree', stdout=out)

        assert 'No problems found' in out.getvalue()

    def test_cycle_is_reported(self, make_folder):
        """Test a corrupted parent chain fails the audit."""
        top = make_folder('top')
        child = make_folder('child', parent=top)
        Folder.objects.filter(id=top.id).update(parent=child)

        err = StringIO()
        with pytest.raises(CommandError, match='problems found'):
            call_command('check_tree', stderr=err)

        assert str(top.id) in err.getvalue()

    def test_duplicate_names_are_reported(self, make_folder):
        """Test case-insensitive sibling duplicates are found."""
        make_folder('Docs')
        make_folder('docs')

        err = StringIO()
        with pytest.raises(CommandError, match='1 problems found'):
            call_command('check_tree', stderr=err)

        assert "Duplicate folder name 'docs'" in err.getvalue()

    def test_workspace_filter(self, other_workspace, make_folder, workspace):
        """Test other workspaces are ignored when filtered."""
        make_folder('Docs', owner=other_workspace)
        make_folder('docs', owner=other_workspace)

        out = StringIO()
        call_command('check_tree', workspace=str(workspace.id), stdout=out)

        assert 'No problems found' in out.getvalue()

    def test_malformed_workspace_id(self):
        """Test a non-UUID workspace filter is a command error."""
        with pytest.raises(CommandError, match='Invalid workspace id: nope'):
            call_command('check_tree', workspace='nope')

    def test_fix_links(self, make_folder, make_link):
        """Test link activation is reconciled with bindings."""
        stale = make_link('stale-link', is_active=True)
        dormant = make_link('dormant-link')
        folder = make_folder('docs')
        folder.link = dormant
        folder.save()

        out = StringIO()
        call_command('check_tree', fix_links=True, stdout=out, stderr=StringIO())

        stale.refresh_from_db()
        dormant.refresh_from_db()
        assert not stale.is_active
        assert dormant.is_active
        assert 'Fixed links: 1 deactivated, 1 activated' in out.getvalue()

    def test_link_mismatch_without_fix(self, make_link):
        """Test mismatches fail the audit when not fixed."""
        make_link('stale-link', is_active=True)

        with pytest.raises(CommandError):
            call_command('check_tree', stderr=StringIO())

        assert Link.objects.get(slug='stale-link').is_active
