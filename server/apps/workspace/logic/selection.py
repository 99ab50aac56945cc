"""Client-side selection state of a folder view.

Nothing here is persisted. A selection belongs to the folder being
viewed and is reset as soon as the viewer navigates elsewhere.
"""

import dataclasses
from collections.abc import Iterable

from server.apps.workspace.logic.tree import ROOT, FolderTarget


@dataclasses.dataclass
class SelectionSet:
    """Set of selected ids of one entity type."""

    selected: set[str] = dataclasses.field(default_factory=set)

    def __len__(self) -> int:
        """Number of selected items."""
        return len(self.selected)

    def __contains__(self, item_id: object) -> bool:
        """Check membership, same as :meth:`is_selected`."""
        return self.is_selected(item_id)

    def toggle(self, item_id: object) -> bool:
        """Flip the selection of an item.

        Args:
            item_id: Item to flip.

        Returns:
            True if the item is selected afterwards.
        """
        key = str(item_id)
        if key in self.selected:
            self.selected.discard(key)
            return False
        self.selected.add(key)
        return True

    def select_all(self, item_ids: Iterable[object]) -> None:
        """Add items to the selection.

        Args:
            item_ids: Items shown in the current folder.
        """
        self.selected.update(str(item_id) for item_id in item_ids)

    def clear(self) -> None:
        """Deselect everything."""
        self.selected.clear()

    def is_selected(self, item_id: object) -> bool:
        """Check whether an item is selected.

        Args:
            item_id: Item identifier (UUID or string).

        Returns:
            True if the item is selected.
        """
        return str(item_id) in self.selected

    def ids(self) -> list[str]:
        """Return the selected ids.

        Returns:
            Selected ids as sorted strings.
        """
        return sorted(self.selected)


@dataclasses.dataclass
class WorkspaceSelection:
    """Selected files and folders of the folder currently on screen.

    ``is_select_mode`` stays on while anything is selected or while the
    viewer explicitly enabled selection mode, even with nothing picked,
    so checkboxes remain visible.
    """

    current_folder: FolderTarget = ROOT
    files: SelectionSet = dataclasses.field(default_factory=SelectionSet)
    folders: SelectionSet = dataclasses.field(default_factory=SelectionSet)
    select_mode_enabled: bool = False

    @property
    def is_select_mode(self) -> bool:
        """Whether selection checkboxes are shown.

        Returns:
            True if selection mode was enabled or anything is selected.
        """
        return self.select_mode_enabled or bool(self.files) or bool(self.folders)

    @property
    def count(self) -> int:
        """Number of selected files and folders."""
        return len(self.files) + len(self.folders)

    def enable_select_mode(self) -> None:
        """Show selection checkboxes with nothing selected yet."""
        self.select_mode_enabled = True

    def clear(self) -> None:
        """Drop every selected item and leave selection mode."""
        self.files.clear()
        self.folders.clear()
        self.select_mode_enabled = False

    def navigate(self, folder: FolderTarget) -> bool:
        """Change the current folder.

        Selection does not span folders, so moving to a different one
        resets it.

        Args:
            folder: Folder id, ``ROOT`` or None.

        Returns:
            True if the folder changed and the selection was reset.
        """
        target = ROOT if folder is None else str(folder)
        if target == str(self.current_folder):
            return False
        self.current_folder = target
        self.clear()
        return True
