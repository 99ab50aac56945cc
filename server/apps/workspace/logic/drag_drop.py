"""Drag-and-drop resolution.

A :class:`DragSession` tracks what is being dragged. Dropping it on a
target yields a :class:`DropPlan` (or None for drops that are simply
ignored), which :func:`apply_drop` turns into bulk moves or copies.
"""

import dataclasses
import enum
import logging

from server.apps.workspace.logic import copying, mutations
from server.apps.workspace.logic.mutations import BulkResult, ItemType
from server.apps.workspace.logic.selection import WorkspaceSelection
from server.apps.workspace.logic.tree import ROOT, FolderTarget
from server.apps.workspace.models import Workspace

logger = logging.getLogger(__name__)


class TargetKind(enum.StrEnum):
    """What the pointer is over when the item is released."""

    ROOT = 'root'
    FOLDER = 'folder'
    FILE = 'file'


class DropAction(enum.StrEnum):
    """Mutation a valid drop resolves to."""

    MOVE = 'move'
    COPY = 'copy'


@dataclasses.dataclass(frozen=True, slots=True)
class TreeItem:
    """A draggable item and the tree (workspace) it is shown from."""

    id: str
    kind: ItemType
    scope: str


@dataclasses.dataclass(frozen=True, slots=True)
class DropTarget:
    """Item under the pointer at drop time."""

    kind: TargetKind
    scope: str
    id: str | None = None

    @classmethod
    def root(cls, scope: str) -> 'DropTarget':
        """Target the workspace root.

        Args:
            scope: Workspace the root belongs to.

        Returns:
            Root drop target.
        """
        return cls(TargetKind.ROOT, scope)

    @classmethod
    def folder(cls, folder_id: object, scope: str) -> 'DropTarget':
        """Target a folder.

        Args:
            folder_id: Folder under the pointer.
            scope: Workspace the folder is shown from.

        Returns:
            Folder drop target.
        """
        return cls(TargetKind.FOLDER, scope, str(folder_id))

    @classmethod
    def file(cls, file_id: object, scope: str) -> 'DropTarget':
        """Target a file (never accepts drops).

        Args:
            file_id: File under the pointer.
            scope: Workspace the file is shown from.

        Returns:
            File drop target.
        """
        return cls(TargetKind.FILE, scope, str(file_id))

    @property
    def folder_target(self) -> FolderTarget:
        """Destination for the mutation.

        Returns:
            ``ROOT`` for the root target, otherwise the target id.
        """
        return ROOT if self.kind == TargetKind.ROOT else self.id


@dataclasses.dataclass(frozen=True, slots=True)
class DropPlan:
    """Resolved drop, ready to be applied."""

    action: DropAction
    file_ids: tuple[str, ...]
    folder_ids: tuple[str, ...]
    target: FolderTarget


def accepts_drop(target: DropTarget) -> bool:
    """Check whether a target can receive dragged items.

    Folders and the root accept files and folders alike; files never
    accept anything.
    """
    return target.kind in {TargetKind.ROOT, TargetKind.FOLDER}


class DragSession:
    """Drag state of one viewer of a workspace.

    One drag is active at a time. Starting a drag on an item that is part
    of the current selection drags the whole selection; starting it on
    any other item drags that item alone.
    """

    def __init__(self, scope: str) -> None:
        """Initialize an idle session.

        Args:
            scope: Id of the workspace the viewer organizes.
        """
        self.scope = scope
        self.item: TreeItem | None = None
        self.file_ids: tuple[str, ...] = ()
        self.folder_ids: tuple[str, ...] = ()

    @property
    def is_active(self) -> bool:
        """Whether a drag is in progress."""
        return self.item is not None

    @property
    def file_count(self) -> int:
        """Number of dragged files."""
        return len(self.file_ids)

    @property
    def folder_count(self) -> int:
        """Number of dragged folders."""
        return len(self.folder_ids)

    @property
    def count(self) -> int:
        """Number of dragged items."""
        return self.file_count + self.folder_count

    @property
    def is_cross_tree(self) -> bool:
        """Whether the dragged item comes from another workspace.

        Returns:
            True if the drop must copy instead of move.
        """
        return self.item is not None and self.item.scope != self.scope

    def start(
        self,
        item: TreeItem,
        selection: WorkspaceSelection | None = None,
    ) -> None:
        """Start dragging an item.

        Args:
            item: Item under the pointer when the drag began.
            selection: Current selection of the view, if any.
        """
        selected = selection is not None and (
            selection.files.is_selected(item.id)
            if item.kind == ItemType.FILE
            else selection.folders.is_selected(item.id)
        )
        if selected:
            self.file_ids = tuple(selection.files.ids())
            self.folder_ids = tuple(selection.folders.ids())
        elif item.kind == ItemType.FILE:
            self.file_ids, self.folder_ids = (item.id,), ()
        else:
            self.file_ids, self.folder_ids = (), (item.id,)
        self.item = item
        logger.debug(
            'Drag started on %s %s: %d files, %d folders',
            item.kind,
            item.id,
            self.file_count,
            self.folder_count,
        )

    def end(self) -> None:
        """Reset the session (drag cancelled or finished)."""
        self.item = None
        self.file_ids = ()
        self.folder_ids = ()

    def resolve(self, target: DropTarget) -> DropPlan | None:
        """Resolve a drop without ending the session.

        Args:
            target: Item under the pointer at release.

        Returns:
            DropPlan, or None when the drop is ignored: nothing is being
            dragged, the target does not accept drops, lies outside the
            viewer's workspace, or is one of the dragged folders.
        """
        if self.item is None or not accepts_drop(target):
            return None
        if target.scope != self.scope:
            return None
        if target.kind == TargetKind.FOLDER and target.id in self.folder_ids:
            return None
        action = DropAction.COPY if self.is_cross_tree else DropAction.MOVE
        return DropPlan(
            action=action,
            file_ids=self.file_ids,
            folder_ids=self.folder_ids,
            target=target.folder_target,
        )

    def drop(self, target: DropTarget) -> DropPlan | None:
        """Release the dragged items over a target and end the session.

        Args:
            target: Item under the pointer at release.

        Returns:
            DropPlan, or None when the drop is ignored.
        """
        plan = self.resolve(target)
        if plan is None:
            logger.debug('Drop ignored on %s %s', target.kind, target.id)
        self.end()
        return plan


def apply_drop(workspace: Workspace, plan: DropPlan) -> BulkResult:
    """Carry out a resolved drop.

    Same-tree drops reparent items in place; cross-tree drops copy them
    into the workspace.

    Args:
        workspace: Workspace receiving the items.
        plan: Plan returned by :meth:`DragSession.drop`.

    Returns:
        BulkResult with per-item outcomes.
    """
    if plan.action == DropAction.COPY:
        return copying.copy_items_to_workspace(
            workspace,
            plan.file_ids,
            plan.folder_ids,
            plan.target,
        )
    return mutations.bulk_move(
        workspace,
        plan.file_ids,
        plan.folder_ids,
        plan.target,
    )
