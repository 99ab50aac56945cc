"""Tests for drag-and-drop resolution and application."""

import pytest

from server.apps.workspace.logic.drag_drop import (
    DragSession,
    DropAction,
    DropTarget,
    TreeItem,
    accepts_drop,
    apply_drop,
)
from server.apps.workspace.logic.mutations import ItemType
from server.apps.workspace.logic.selection import WorkspaceSelection
from server.apps.workspace.logic.tree import ROOT

SCOPE = 'ws-1'


def _file(item_id, scope=SCOPE):
    return TreeItem(item_id, ItemType.FILE, scope)


def _folder(item_id, scope=SCOPE):
    return TreeItem(item_id, ItemType.FOLDER, scope)


class TestDropAcceptance:
    """Tests for drop target rules."""

    def test_folders_and_root_accept(self):
        """Test folders and the root sentinel accept drops."""
        assert accepts_drop(DropTarget.folder('d1', SCOPE))
        assert accepts_drop(DropTarget.root(SCOPE))

    def test_files_never_accept(self):
        """Test files are not drop targets."""
        assert not accepts_drop(DropTarget.file('f1', SCOPE))


class TestDragSession:
    """Tests for drag resolution."""

    def test_unselected_item_drags_alone(self):
        """Test dragging an unselected item ignores the selection."""
        selection = WorkspaceSelection()
        selection.files.select_all(['f1', 'f2'])
        session = DragSession(SCOPE)

        session.start(_file('f3'), selection)

        assert session.file_ids == ('f3',)
        assert session.count == 1

    def test_selected_item_drags_whole_selection(self):
        """Test dragging a selected folder carries files and folders."""
        selection = WorkspaceSelection()
        selection.files.select_all(['f1', 'f2'])
        selection.folders.select_all(['d1', 'd2'])
        session = DragSession(SCOPE)

        session.start(_folder('d1'), selection)

        assert session.file_count == 2
        assert session.folder_count == 2

    def test_drop_on_file_is_ignored(self):
        """Test invalid targets resolve to no plan and end the drag."""
        session = DragSession(SCOPE)
        session.start(_file('f1'))

        assert session.drop(DropTarget.file('f2', SCOPE)) is None
        assert not session.is_active

    def test_drop_on_itself_is_ignored(self):
        """Test dropping a folder onto itself does nothing."""
        session = DragSession(SCOPE)
        session.start(_folder('d1'))

        assert session.drop(DropTarget.folder('d1', SCOPE)) is None

    def test_drop_without_drag(self):
        """Test an idle session resolves nothing."""
        assert DragSession(SCOPE).resolve(DropTarget.root(SCOPE)) is None

    def test_same_tree_resolves_to_move(self):
        """Test same-scope drags move."""
        session = DragSession(SCOPE)
        session.start(_folder('d1'))

        plan = session.drop(DropTarget.root(SCOPE))

        assert plan.action == DropAction.MOVE
        assert plan.folder_ids == ('d1',)
        assert plan.target == ROOT

    def test_cross_tree_resolves_to_copy(self):
        """Test items from another tree are copied."""
        session = DragSession(SCOPE)
        session.start(_file('f1', scope='shared-ws'))

        plan = session.drop(DropTarget.folder('d9', SCOPE))

        assert plan.action == DropAction.COPY
        assert plan.target == 'd9'

    def test_target_outside_workspace_is_ignored(self):
        """Test drops onto a shared preview's folders are ignored."""
        session = DragSession(SCOPE)
        session.start(_file('f1'))

        assert session.drop(DropTarget.folder('d9', 'shared-ws')) is None


@pytest.mark.django_db
class TestApplyDrop:
    """Tests for turning plans into mutations."""

    def test_dragging_selected_folder_moves_whole_selection(
        self,
        workspace,
        make_folder,
        make_file,
    ):
        """Test a 3-item selection (2 files + 1 folder) moves together."""
        dragged = make_folder('dragged')
        target = make_folder('target')
        file_one = make_file('one.txt')
        file_two = make_file('two.txt')
        scope = str(workspace.id)

        selection = WorkspaceSelection()
        selection.files.select_all([file_one.id, file_two.id])
        selection.folders.toggle(dragged.id)
        session = DragSession(scope)
        session.start(TreeItem(str(dragged.id), ItemType.FOLDER, scope), selection)

        plan = session.drop(DropTarget.folder(target.id, scope))
        result = apply_drop(workspace, plan)

        assert result.failed_count == 0
        assert result.succeeded_count == 3
        for item in (dragged, file_one, file_two):
            item.refresh_from_db()
        assert dragged.parent == target
        assert file_one.folder == target
        assert file_two.folder == target

    def test_one_failure_does_not_block_the_rest(
        self,
        workspace,
        make_folder,
        make_file,
    ):
        """Test a circular item fails alone inside a dragged selection."""
        target = make_folder('target')
        inner = make_folder('inner', parent=target)
        loose = make_file('loose.txt')
        scope = str(workspace.id)

        selection = WorkspaceSelection()
        selection.files.toggle(loose.id)
        selection.folders.toggle(target.id)
        session = DragSession(scope)
        session.start(TreeItem(str(loose.id), ItemType.FILE, scope), selection)

        result = apply_drop(workspace, session.drop(DropTarget.folder(inner.id, scope)))

        loose.refresh_from_db()
        assert loose.folder == inner
        assert result.failed_count == 1
        assert result.failures[0].reason == 'circular reference'
