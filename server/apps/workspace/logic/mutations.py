"""Move and delete operations over a workspace tree.

Single-item operations each run in their own transaction and raise a
:class:`~server.apps.workspace.exceptions.WorkspaceOperationError`
subclass on failure. Bulk operations call them item by item and collect
per-item outcomes into a :class:`BulkResult` instead of raising.
"""

import dataclasses
import enum
import logging
import uuid
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.workspace.exceptions import (
    ErrorKind,
    ItemNotFoundError,
    StorageOperationError,
    TreeIntegrityError,
    TreeValidationError,
    WorkspaceOperationError,
)
from server.apps.workspace.logic import naming, tree
from server.apps.workspace.models import File, Folder, Link, Workspace

if TYPE_CHECKING:
    from server.apps.workspace.infrastructure.storage import (
        BlobRemoval,
        FileStorage,
    )

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


class MoveState(enum.Enum):
    """States a single move request passes through."""

    REQUESTED = 'requested'
    VALIDATING = 'validating'
    REJECTED = 'rejected'
    NAME_RESOLVING = 'name_resolving'
    APPLYING = 'applying'
    COMMITTED = 'committed'


class ItemType(enum.StrEnum):
    """Entity type of a bulk item."""

    FILE = 'file'
    FOLDER = 'folder'


@dataclasses.dataclass(frozen=True, slots=True)
class MoveOutcome:
    """Result of a committed move.

    ``moved`` is False when the item already sat in the target, and
    ``name`` differs from the original name when a sibling collision
    forced a rename.
    """

    item_id: uuid.UUID
    item_type: ItemType
    name: str
    moved: bool
    renamed: bool


@dataclasses.dataclass(frozen=True, slots=True)
class FolderDeletion:
    """Counts of what a folder delete removed."""

    folders: int
    files: int
    links_deactivated: int


class _MoveTrace:
    """Logs the state transitions of one move request."""

    def __init__(self, item_type: ItemType, item_id: object) -> None:
        self.item_type = item_type
        self.item_id = item_id
        self.state = MoveState.REQUESTED
        logger.debug('Move %s %s: %s', item_type, item_id, self.state.value)

    def advance(self, state: MoveState) -> None:
        logger.debug(
            'Move %s %s: %s -> %s',
            self.item_type,
            self.item_id,
            self.state.value,
            state.value,
        )
        self.state = state

    def reject(self, exc: WorkspaceOperationError) -> None:
        self.advance(MoveState.REJECTED)
        logger.warning(
            'Move of %s %s rejected: %s',
            self.item_type,
            self.item_id,
            exc.reason,
        )


def move_folder(
    workspace: Workspace,
    folder_id: object,
    target: tree.FolderTarget,
) -> MoveOutcome:
    """Reparent a folder.

    Moving a folder into its current parent is a successful no-op.

    Args:
        workspace: Owning workspace.
        folder_id: Folder to move.
        target: New parent id, ``ROOT`` or None.

    Returns:
        MoveOutcome describing the committed move.

    Raises:
        ItemNotFoundError: If the folder or the target does not exist.
        TreeValidationError: If the move is circular, too deep or targets
            another workspace.
        TreeIntegrityError: If the stored tree is already corrupted.
    """
    trace = _MoveTrace(ItemType.FOLDER, folder_id)
    try:
        with transaction.atomic():
            trace.advance(MoveState.VALIDATING)
            folder = tree.get_folder(workspace, folder_id)
            target_folder = tree.resolve_target_folder(workspace, target)
            target_id = target_folder.id if target_folder is not None else None
            locked = tree.lock_folders(folder.id, target_id)
            if folder.id not in locked:
                raise ItemNotFoundError('folder', folder_id)
            if target_id is not None and target_id not in locked:
                raise ItemNotFoundError('folder', target)
            folder = locked[folder.id]
            target_folder = locked.get(target_id)
            if folder.parent_id == target_id:
                trace.advance(MoveState.COMMITTED)
                return MoveOutcome(
                    folder.id,
                    ItemType.FOLDER,
                    folder.name,
                    moved=False,
                    renamed=False,
                )
            tree.validate_folder_move(folder, target_folder)

            trace.advance(MoveState.NAME_RESOLVING)
            original_name = folder.name
            folder.name = naming.resolve_folder_name(
                workspace,
                target_id,
                original_name,
                exclude_id=folder.id,
            )

            trace.advance(MoveState.APPLYING)
            folder.parent = target_folder
            folder.save(update_fields=['parent', 'name', 'updated_at'])
    except WorkspaceOperationError as exc:
        trace.reject(exc)
        raise

    trace.advance(MoveState.COMMITTED)
    logger.info(
        'Folder moved: %s (ID: %s) -> %s',
        folder.name,
        folder.id,
        target_id or tree.ROOT,
    )
    return MoveOutcome(
        folder.id,
        ItemType.FOLDER,
        folder.name,
        moved=True,
        renamed=folder.name != original_name,
    )


def move_file(
    workspace: Workspace,
    file_id: object,
    target: tree.FolderTarget,
) -> MoveOutcome:
    """Move a file to another folder.

    The blob is not touched: only the record's folder (and, on a name
    collision, its display name) changes.

    Args:
        workspace: Owning workspace.
        file_id: File to move.
        target: Destination folder id, ``ROOT`` or None.

    Returns:
        MoveOutcome describing the committed move.

    Raises:
        ItemNotFoundError: If the file or the target does not exist.
        TreeValidationError: If the target belongs to another workspace.
    """
    trace = _MoveTrace(ItemType.FILE, file_id)
    try:
        with transaction.atomic():
            trace.advance(MoveState.VALIDATING)
            # Folder rows are locked before file rows
            target_folder = tree.resolve_target_folder(
                workspace,
                target,
                lock=True,
            )
            file_instance = tree.get_file(workspace, file_id, lock=True)
            target_id = target_folder.id if target_folder is not None else None
            if file_instance.folder_id == target_id:
                trace.advance(MoveState.COMMITTED)
                return MoveOutcome(
                    file_instance.id,
                    ItemType.FILE,
                    file_instance.name,
                    moved=False,
                    renamed=False,
                )

            trace.advance(MoveState.NAME_RESOLVING)
            original_name = file_instance.name
            file_instance.name = naming.resolve_file_name(
                workspace,
                target_id,
                original_name,
                exclude_id=file_instance.id,
            )

            trace.advance(MoveState.APPLYING)
            file_instance.folder = target_folder
            file_instance.save(update_fields=['folder', 'name', 'modified_at'])
    except WorkspaceOperationError as exc:
        trace.reject(exc)
        raise

    trace.advance(MoveState.COMMITTED)
    logger.info(
        'File moved: %s (ID: %s) -> %s',
        file_instance.name,
        file_instance.id,
        target_id or tree.ROOT,
    )
    return MoveOutcome(
        file_instance.id,
        ItemType.FILE,
        file_instance.name,
        moved=True,
        renamed=file_instance.name != original_name,
    )


def delete_file(workspace: Workspace, file_id: object) -> 'BlobRemoval':
    """Delete a file, blob first.

    The record is removed only once the blob is gone (deleted now or
    already absent). If the blob delete fails the record is kept so the
    stored object stays reachable.

    Args:
        workspace: Owning workspace.
        file_id: File to delete.

    Returns:
        How the blob removal went (deleted or already absent).

    Raises:
        ItemNotFoundError: If the file is not in the workspace.
        StorageOperationError: If the blob could not be deleted.
    """
    file_instance = tree.get_file(workspace, file_id)
    logger.info(
        'Deleting file: ID=%s, path=%s',
        file_instance.id,
        file_instance.storage_path,
    )

    removal = _get_storage().remove_blob(file_instance.storage_path)

    with transaction.atomic():
        File.objects.filter(id=file_instance.id).delete()
    logger.info(
        'File record deleted from database: ID=%s (blob %s)',
        file_instance.id,
        removal.value,
    )
    return removal


def delete_folder(workspace: Workspace, folder_id: object) -> FolderDeletion:
    """Delete a folder with every descendant folder and file.

    Blobs go first. If any blob cannot be deleted, only the records of
    files whose blobs are gone are removed, the folder tree stays in
    place and the storage error is raised. Otherwise one transaction
    deactivates links bound inside the subtree, removes file records
    and removes folders bottom-up.

    Args:
        workspace: Owning workspace.
        folder_id: Folder to delete.

    Returns:
        FolderDeletion with the removed counts.

    Raises:
        ItemNotFoundError: If the folder is not in the workspace.
        StorageOperationError: If one or more blobs could not be deleted.
        TreeIntegrityError: If the subtree is cyclic or too deep.
    """
    folder = tree.get_folder(workspace, folder_id)
    descendants = tree.get_descendant_folder_ids(folder.id)
    folder_ids = [folder.id, *descendants]
    files = list(
        File.objects.filter(folder_id__in=folder_ids).only('id', 'storage_path'),
    )
    logger.info(
        'Deleting folder: %s (ID: %s, %d subfolders, %d files)',
        folder.name,
        folder.id,
        len(descendants),
        len(files),
    )

    storage = _get_storage()
    removed_ids = []
    failures: list[StorageOperationError] = []
    for file_instance in files:
        try:
            storage.remove_blob(file_instance.storage_path)
        except StorageOperationError as exc:
            failures.append(exc)
        else:
            removed_ids.append(file_instance.id)

    if failures:
        with transaction.atomic():
            File.objects.filter(id__in=removed_ids).delete()
        logger.warning(
            'Folder %s kept: %d of %d blobs could not be deleted',
            folder.id,
            len(failures),
            len(files),
        )
        raise StorageOperationError(
            failures[0].storage_path,
            f'{len(failures)} of {len(files)} files could not be deleted from storage',
        )

    levels: dict[int, list[uuid.UUID]] = {}
    for descendant_id, depth in descendants.items():
        levels.setdefault(depth, []).append(descendant_id)

    with transaction.atomic():
        links_deactivated = Link.objects.filter(
            folder__id__in=folder_ids,
            is_active=True,
        ).update(is_active=False)
        File.objects.filter(id__in=removed_ids).delete()
        for depth in sorted(levels, reverse=True):
            Folder.objects.filter(id__in=levels[depth]).delete()
        Folder.objects.filter(id=folder.id).delete()

    logger.info(
        'Folder deleted: ID=%s (%d folders, %d files, %d links deactivated)',
        folder.id,
        len(folder_ids),
        len(removed_ids),
        links_deactivated,
    )
    return FolderDeletion(
        folders=len(folder_ids),
        files=len(removed_ids),
        links_deactivated=links_deactivated,
    )


@dataclasses.dataclass(frozen=True, slots=True)
class ItemFailure:
    """One failed item of a bulk operation."""

    item_id: str
    item_type: ItemType
    kind: ErrorKind
    reason: str


@dataclasses.dataclass(slots=True)
class BulkResult:
    """Per-item outcome of a bulk operation."""

    succeeded_files: list[str] = dataclasses.field(default_factory=list)
    succeeded_folders: list[str] = dataclasses.field(default_factory=list)
    failures: list[ItemFailure] = dataclasses.field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        """Number of items that succeeded.

        Returns:
            Succeeded files plus succeeded folders.
        """
        return len(self.succeeded_files) + len(self.succeeded_folders)

    @property
    def failed_count(self) -> int:
        """Number of items that failed.

        Returns:
            Count of recorded failures.
        """
        return len(self.failures)

    @property
    def total(self) -> int:
        """Number of items with a recorded outcome.

        Returns:
            Succeeded plus failed items.
        """
        return self.succeeded_count + self.failed_count

    @property
    def failed_files(self) -> list[ItemFailure]:
        """Failures of file items.

        Returns:
            File failures in the order they were recorded.
        """
        return [
            failure for failure in self.failures
            if failure.item_type == ItemType.FILE
        ]

    @property
    def failed_folders(self) -> list[ItemFailure]:
        """Failures of folder items.

        Returns:
            Folder failures in the order they were recorded.
        """
        return [
            failure for failure in self.failures
            if failure.item_type == ItemType.FOLDER
        ]

    def record_success(self, item_id: str, item_type: ItemType) -> None:
        """Record an item that succeeded.

        Args:
            item_id: Item identifier as requested.
            item_type: Item entity type.
        """
        if item_type == ItemType.FILE:
            self.succeeded_files.append(item_id)
        else:
            self.succeeded_folders.append(item_id)

    def record_failure(
        self,
        item_id: str,
        item_type: ItemType,
        kind: ErrorKind,
        reason: str,
    ) -> None:
        """Record an item that failed.

        Args:
            item_id: Item identifier as requested.
            item_type: Item entity type.
            kind: Error category.
            reason: Short human-readable reason.
        """
        self.failures.append(ItemFailure(item_id, item_type, kind, reason))

    def failure_for(self, item_id: str) -> ItemFailure | None:
        """Find the failure recorded for an item.

        Args:
            item_id: Item identifier as requested.

        Returns:
            The failure, or None if the item did not fail.
        """
        for failure in self.failures:
            if failure.item_id == item_id:
                return failure
        return None

    def settle_nested(self, nested: dict[tuple[ItemType, str], str]) -> None:
        """Give nested items the outcome of the ancestor they travel with.

        Args:
            nested: Mapping of (type, id) to the id of the selected
                ancestor folder that carried the item.
        """
        for (item_type, item_id), ancestor_id in nested.items():
            ancestor_failure = self.failure_for(ancestor_id)
            if ancestor_failure is None:
                self.record_success(item_id, item_type)
            else:
                self.record_failure(
                    item_id,
                    item_type,
                    ancestor_failure.kind,
                    ancestor_failure.reason,
                )

    def summary(self, verb: str) -> str:
        """Render a one-line partial-success message.

        Example: "Moved 4 of 5 items, 1 failed: circular reference"

        Args:
            verb: Past-tense verb, capitalized ('Moved', 'Deleted').

        Returns:
            Human-readable summary.
        """
        message = f'{verb} {self.succeeded_count} of {self.total} items'
        if not self.failures:
            return message
        reasons = list(dict.fromkeys(failure.reason for failure in self.failures))
        return f'{message}, {self.failed_count} failed: {"; ".join(reasons)}'


@dataclasses.dataclass(frozen=True, slots=True)
class BulkPlan:
    """Bulk request split into top-level items and travelling descendants."""

    files: list[str]
    folders: list[str]
    nested: dict[tuple[ItemType, str], str]


def _dedupe(ids: Iterable[object]) -> list[str]:
    return list(dict.fromkeys(str(item_id) for item_id in ids))


def _as_uuid(item_id: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(item_id)
    except ValueError:
        return None


def _selected_ancestor(
    folder_id: object,
    selected: dict[uuid.UUID, str],
    *,
    include_self: bool,
) -> str | None:
    try:
        chain = tree.get_ancestor_ids(folder_id)
    except TreeIntegrityError:
        # Let the item fail on its own instead of travelling with a corrupt chain
        return None
    if not include_self:
        chain = chain[1:]
    # Topmost selected ancestor, which is never nested itself
    for ancestor_id in reversed(chain):
        if ancestor_id in selected:
            return selected[ancestor_id]
    return None


def plan_bulk(
    workspace: Workspace | None,
    file_ids: Iterable[object],
    folder_ids: Iterable[object],
    *,
    nest: bool = True,
) -> BulkPlan:
    """Split a bulk request into top-level items and nested ones.

    With ``nest``, an item whose ancestor folder is also part of the
    request travels with that ancestor, so it is not processed on its
    own. Deletes and copies carry a folder's content along; moves do
    not, since a rejected or no-op folder move leaves its content behind.

    Args:
        workspace: Workspace the files must belong to; None when the
            items come from other trees (cross-tree copy).
        file_ids: Requested file ids.
        folder_ids: Requested folder ids.
        nest: Whether to filter out items carried by a selected ancestor.

    Returns:
        Plan with top-level ids and a nested-id -> ancestor-id mapping.

    Raises:
        TreeValidationError: If the request exceeds the bulk item limit.
    """
    files = _dedupe(file_ids)
    folders = _dedupe(folder_ids)
    limit = settings.WORKSPACE_MAX_BULK_ITEMS
    if len(files) + len(folders) > limit:
        raise TreeValidationError(f'bulk requests are limited to {limit} items')

    selected = {
        parsed: folder_id
        for folder_id in folders
        if (parsed := _as_uuid(folder_id)) is not None
    }
    if not nest or not selected:
        return BulkPlan(files=files, folders=folders, nested={})

    nested: dict[tuple[ItemType, str], str] = {}
    for parsed, folder_id in selected.items():
        ancestor = _selected_ancestor(parsed, selected, include_self=False)
        if ancestor is not None:
            nested[(ItemType.FOLDER, folder_id)] = ancestor

    parsed_files = {
        parsed: file_id
        for file_id in files
        if (parsed := _as_uuid(file_id)) is not None
    }
    file_rows = File.objects.filter(
        id__in=list(parsed_files),
        folder__isnull=False,
    )
    if workspace is not None:
        file_rows = file_rows.filter(workspace=workspace)
    file_parents = file_rows.values_list('id', 'folder_id')
    for parsed, parent_id in file_parents:
        ancestor = _selected_ancestor(parent_id, selected, include_self=True)
        if ancestor is not None:
            nested[(ItemType.FILE, parsed_files[parsed])] = ancestor

    if nested:
        logger.debug('Bulk request: %d nested items travel with ancestors', len(nested))
    return BulkPlan(
        files=[fid for fid in files if (ItemType.FILE, fid) not in nested],
        folders=[fid for fid in folders if (ItemType.FOLDER, fid) not in nested],
        nested=nested,
    )


def run_item(
    result: BulkResult,
    item_id: str,
    item_type: ItemType,
    operation: Callable[[], Any],
) -> None:
    """Run one bulk item, recording its outcome instead of raising.

    Args:
        result: Aggregate to record into.
        item_id: Item identifier as requested.
        item_type: Item entity type.
        operation: Zero-argument callable performing the item's work.
    """
    try:
        operation()
    except WorkspaceOperationError as exc:
        logger.warning(
            'Bulk item failed: %s %s (%s: %s)',
            item_type,
            item_id,
            exc.kind,
            exc.reason,
        )
        result.record_failure(item_id, item_type, exc.kind, exc.reason)
    except Exception:
        logger.exception('Unexpected error on bulk item %s %s', item_type, item_id)
        result.record_failure(
            item_id,
            item_type,
            ErrorKind.INTERNAL,
            'unexpected error',
        )
    else:
        result.record_success(item_id, item_type)


def bulk_move(
    workspace: Workspace,
    file_ids: Iterable[object],
    folder_ids: Iterable[object],
    target: tree.FolderTarget,
) -> BulkResult:
    """Move many items, each in its own transaction.

    Every id is moved on its own, including items inside a folder that
    is part of the same request.

    Args:
        workspace: Owning workspace.
        file_ids: Files to move.
        folder_ids: Folders to move.
        target: Destination folder id, ``ROOT`` or None.

    Returns:
        BulkResult with per-item outcomes.

    Raises:
        TreeValidationError: If the request exceeds the bulk item limit.
    """
    plan = plan_bulk(workspace, file_ids, folder_ids, nest=False)
    result = BulkResult()
    for folder_id in plan.folders:
        run_item(
            result,
            folder_id,
            ItemType.FOLDER,
            lambda item=folder_id: move_folder(workspace, item, target),
        )
    for file_id in plan.files:
        run_item(
            result,
            file_id,
            ItemType.FILE,
            lambda item=file_id: move_file(workspace, item, target),
        )

    logger.info('Bulk move finished: %s', result.summary('Moved'))
    return result


def bulk_delete(
    workspace: Workspace,
    file_ids: Iterable[object],
    folder_ids: Iterable[object],
) -> BulkResult:
    """Delete many items, each independently.

    Args:
        workspace: Owning workspace.
        file_ids: Files to delete.
        folder_ids: Folders to delete.

    Returns:
        BulkResult with per-item outcomes.

    Raises:
        TreeValidationError: If the request exceeds the bulk item limit.
    """
    plan = plan_bulk(workspace, file_ids, folder_ids)
    result = BulkResult()
    for folder_id in plan.folders:
        run_item(
            result,
            folder_id,
            ItemType.FOLDER,
            lambda item=folder_id: delete_folder(workspace, item),
        )
    for file_id in plan.files:
        run_item(
            result,
            file_id,
            ItemType.FILE,
            lambda item=file_id: delete_file(workspace, item),
        )
    result.settle_nested(plan.nested)

    logger.info('Bulk delete finished: %s', result.summary('Deleted'))
    return result
