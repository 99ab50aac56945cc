"""Tests for tree validation and recursive queries."""

import uuid

import pytest

from server.apps.workspace.exceptions import (
    ItemNotFoundError,
    TreeIntegrityError,
    TreeValidationError,
)
from server.apps.workspace.logic import tree
from server.apps.workspace.models import Folder


@pytest.fixture
def chain(make_folder):
    """Create /a/b/c and return the three folders."""
    folder_a = make_folder('a')
    folder_b = make_folder('b', parent=folder_a)
    folder_c = make_folder('c', parent=folder_b)
    return folder_a, folder_b, folder_c


@pytest.mark.django_db
class TestAncestry:
    """Tests for parent chain queries."""

    def test_ancestor_ids_self_first(self, chain):
        """Test chain runs from the folder up to the root level."""
        folder_a, folder_b, folder_c = chain

        assert tree.get_ancestor_ids(folder_c.id) == [
            folder_c.id,
            folder_b.id,
            folder_a.id,
        ]

    def test_unknown_folder_has_no_ancestors(self):
        """Test unknown id yields an empty chain."""
        assert tree.get_ancestor_ids(uuid.uuid4()) == []

    def test_depth(self, chain):
        """Test root sentinel is depth 0, top-level folders depth 1."""
        folder_a, _, folder_c = chain

        assert tree.get_depth(tree.ROOT) == 0
        assert tree.get_depth(None) == 0
        assert tree.get_depth(folder_a.id) == 1
        assert tree.get_depth(folder_c.id) == 3

    def test_stored_cycle_raises_integrity_error(self, chain):
        """Test a corrupted parent chain is detected instead of looping."""
        folder_a, _, folder_c = chain
        Folder.objects.filter(id=folder_a.id).update(parent=folder_c)

        with pytest.raises(TreeIntegrityError):
            tree.get_ancestor_ids(folder_c.id)

    def test_breadcrumbs_root_first(self, workspace, chain):
        """Test breadcrumbs list folders from the root down."""
        folder_a, folder_b, folder_c = chain

        crumbs = tree.breadcrumbs(workspace, folder_c.id)

        assert crumbs == [folder_a, folder_b, folder_c]
        assert tree.breadcrumbs(workspace, tree.ROOT) == []


@pytest.mark.django_db
class TestMoveValidation:
    """Tests for cycle and depth checks."""

    def test_move_into_itself_is_circular(self, chain):
        """Test target equal to the moving folder is a cycle."""
        folder_a, _, _ = chain

        assert tree.would_create_cycle(folder_a.id, folder_a.id)

    def test_move_into_descendant_is_circular(self, chain):
        """Test any descendant target is a cycle."""
        folder_a, folder_b, folder_c = chain

        assert tree.would_create_cycle(folder_a.id, folder_b.id)
        assert tree.would_create_cycle(folder_a.id, folder_c.id)

    def test_move_to_root_or_sibling_is_not_circular(self, chain, make_folder):
        """Test root and unrelated folders are valid targets."""
        _, folder_b, _ = chain
        sibling = make_folder('sibling')

        assert not tree.would_create_cycle(folder_b.id, tree.ROOT)
        assert not tree.would_create_cycle(folder_b.id, sibling.id)

    def test_subtree_height(self, chain):
        """Test height counts folder levels below the folder."""
        folder_a, folder_b, folder_c = chain

        assert tree.subtree_height(folder_a.id) == 2
        assert tree.subtree_height(folder_b.id) == 1
        assert tree.subtree_height(folder_c.id) == 0

    def test_exceeds_max_depth(self, settings, chain):
        """Test depth budget includes the travelling subtree."""
        settings.WORKSPACE_MAX_FOLDER_DEPTH = 4
        folder_a, folder_b, folder_c = chain

        assert not tree.exceeds_max_depth(folder_c.id)
        assert tree.exceeds_max_depth(folder_c.id, subtree_levels=1)
        assert not tree.exceeds_max_depth(folder_a.id, subtree_levels=2)
        assert tree.exceeds_max_depth(folder_b.id, subtree_levels=2)

    def test_validate_folder_move_rejects_cycle(self, chain):
        """Test validation raises with a circular reference reason."""
        folder_a, _, folder_c = chain

        with pytest.raises(TreeValidationError, match='circular reference'):
            tree.validate_folder_move(folder_a, folder_c)


@pytest.mark.django_db
class TestLookups:
    """Tests for workspace-scoped lookups."""

    def test_malformed_id_is_not_found(self, workspace):
        """Test non-UUID ids resolve to not found."""
        with pytest.raises(ItemNotFoundError):
            tree.get_folder(workspace, 'not-a-uuid')

    def test_other_workspace_folder_is_not_found(
        self,
        workspace,
        other_workspace,
        make_folder,
    ):
        """Test folders of another workspace are invisible."""
        foreign = make_folder('foreign', owner=other_workspace)

        with pytest.raises(ItemNotFoundError):
            tree.get_folder(workspace, foreign.id)

    def test_cross_workspace_target_is_validation_error(
        self,
        workspace,
        other_workspace,
        make_folder,
    ):
        """Test a foreign target is rejected as invalid."""
        foreign = make_folder('foreign', owner=other_workspace)

        with pytest.raises(TreeValidationError):
            tree.resolve_target_folder(workspace, foreign.id)

    def test_root_target_resolves_to_none(self, workspace):
        """Test root sentinel needs no lookup."""
        assert tree.resolve_target_folder(workspace, tree.ROOT) is None


@pytest.mark.django_db
class TestFetchSubtree:
    """Tests for the single-query descendant fetch."""

    def test_relative_paths(self, chain, make_file):
        """Test paths are relative to the root and use display names."""
        folder_a, folder_b, folder_c = chain
        make_file('top.txt', folder=folder_a)
        make_file('Résumé 1.pdf', folder=folder_c)

        entries = tree.fetch_subtree(folder_a.id)

        assert [(entry.kind, entry.relative_path) for entry in entries] == [
            (tree.EntryKind.FOLDER, 'b'),
            (tree.EntryKind.FOLDER, 'b/c'),
            (tree.EntryKind.FILE, 'b/c/Résumé 1.pdf'),
            (tree.EntryKind.FILE, 'top.txt'),
        ]

    def test_entries_carry_parent_ids(self, chain, make_file):
        """Test each entry references its direct parent."""
        folder_a, folder_b, folder_c = chain
        created = make_file('deep.txt', folder=folder_c)

        entries = {entry.id: entry for entry in tree.fetch_subtree(folder_a.id)}

        assert entries[folder_b.id].parent_id == folder_a.id
        assert entries[created.id].parent_id == folder_c.id
        assert entries[created.id].storage_path == created.storage_path

    def test_cycle_below_root_raises(self, chain):
        """Test a cycle reachable from the root is reported."""
        folder_a, _, folder_c = chain
        Folder.objects.filter(id=folder_a.id).update(parent=folder_c)

        with pytest.raises(TreeIntegrityError):
            tree.fetch_subtree(folder_a.id)


@pytest.mark.django_db
class TestLockFolders:
    """Tests for ordered row locking."""

    def test_locks_in_primary_key_order(self, make_folder):
        """Test rows come back sorted by id whatever the argument order."""
        first = make_folder('first')
        second = make_folder('second')
        expected = sorted([first.id, second.id])

        locked = tree.lock_folders(expected[1], None, expected[0])

        assert list(locked) == expected

    def test_missing_folder_is_absent(self, make_folder):
        """Test a deleted folder is simply not returned."""
        folder = make_folder('kept')

        locked = tree.lock_folders(folder.id, uuid.uuid4())

        assert list(locked) == [folder.id]
