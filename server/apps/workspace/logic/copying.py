"""Cross-tree copies: bringing shared items into a workspace.

An item shown from someone else's shared folder cannot be reparented
into the viewer's tree. Dropping it there copies it instead: new records
with new ids, new blobs, and no link bindings carried over. The source
must sit under an active link that grants the viewer access.
"""

import logging
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.workspace.exceptions import (
    ItemNotFoundError,
    TreeValidationError,
)
from server.apps.workspace.infrastructure.metadata import build_storage_path
from server.apps.workspace.logic import naming, tree
from server.apps.workspace.logic.mutations import (
    BulkResult,
    ItemType,
    plan_bulk,
    run_item,
)
from server.apps.workspace.models import File, Folder, Link, Workspace

if TYPE_CHECKING:
    from server.apps.workspace.infrastructure.storage import FileStorage

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    return default_storage  # type: ignore[return-value]


def link_grants_access(link: Link, workspace: Workspace) -> bool:
    """Check whether a link lets a workspace's owner see its content.

    Args:
        link: Active link bound to a folder.
        workspace: Workspace asking for access.

    Returns:
        True for public links, links of the workspace itself, and links
        listing the owner's email among their recipients.
    """
    if link.is_public or link.workspace_id == workspace.id:
        return True
    email = workspace.user.email.strip().lower()
    return bool(email) and email in link.allowed_emails


def is_shared(folder_id: object | None, workspace: Workspace) -> bool:
    """Check whether a folder is reachable by a workspace through a link.

    The folder itself or any of its ancestors must be bound to a link
    in the Active state that grants the workspace access.

    Args:
        folder_id: Folder to check; None (workspace root) is never shared.
        workspace: Workspace the content would be copied into.

    Returns:
        True if an active link exposes the folder's content to the
        workspace's owner.
    """
    if folder_id is None:
        return False
    chain = tree.get_ancestor_ids(folder_id)
    links = Link.objects.filter(folder__id__in=chain, is_active=True)
    return any(link_grants_access(link, workspace) for link in links)


def _get_shared_file(workspace: Workspace, file_id: object) -> File:
    try:
        source = File.objects.get(id=file_id)
    except (File.DoesNotExist, ValidationError, ValueError):
        raise ItemNotFoundError('file', file_id) from None
    if not is_shared(source.folder_id, workspace):
        # Unshared items are reported as missing to avoid leaking them
        raise ItemNotFoundError('file', file_id)
    return source


def _get_shared_folder(workspace: Workspace, folder_id: object) -> Folder:
    try:
        source = Folder.objects.get(id=folder_id)
    except (Folder.DoesNotExist, ValidationError, ValueError):
        raise ItemNotFoundError('folder', folder_id) from None
    if not is_shared(source.id, workspace):
        raise ItemNotFoundError('folder', folder_id)
    return source


class _BlobCopier:
    """Copies blobs and remembers them for rollback."""

    def __init__(self, workspace: Workspace, storage: 'FileStorage') -> None:
        self.workspace = workspace
        self.storage = storage
        self.created: list[str] = []

    def copy_file(  # noqa: WPS211
        self,
        source_path: str,
        target: Folder | None,
        name: str,
        *,
        resolve_name: bool,
    ) -> tuple[str, str]:
        """Copy one blob next to ``target``.

        Returns:
            Tuple of the display name and the new storage path.
        """
        folder_id = target.id if target is not None else None
        if resolve_name:
            name = naming.resolve_file_name(
                self.workspace,
                folder_id,
                name,
                blob_exists=self.storage.exists,
            )
        storage_path = build_storage_path(self.workspace.id, folder_id, name)
        self.storage.copy_object(source_path, storage_path)
        self.created.append(storage_path)
        return name, storage_path

    def rollback(self) -> None:
        for storage_path in self.created:
            self.storage.rollback_upload(storage_path)


def _clone_file_record(
    workspace: Workspace,
    source: File,
    target: Folder | None,
    name: str,
    storage_path: str,
) -> File:
    return File.objects.create(
        workspace=workspace,
        folder=target,
        name=name,
        size_bytes=source.size_bytes,
        mime_type=source.mime_type,
        checksum_sha256=source.checksum_sha256,
        storage_path=storage_path,
        uploader_email=source.uploader_email,
        uploader_name=source.uploader_name,
    )


def copy_file(
    workspace: Workspace,
    file_id: object,
    target: tree.FolderTarget,
) -> File:
    """Copy a shared file into the workspace.

    Args:
        workspace: Destination workspace.
        file_id: Source file, reachable through an active link.
        target: Destination folder id, ``ROOT`` or None.

    Returns:
        The new File record.

    Raises:
        ItemNotFoundError: If the source is unknown or not shared, or the
            target does not exist.
        TreeValidationError: If the target belongs to another workspace.
        StorageOperationError: If the blob copy fails.
    """
    source = _get_shared_file(workspace, file_id)
    target_folder = tree.resolve_target_folder(workspace, target)
    copier = _BlobCopier(workspace, _get_storage())

    name, storage_path = copier.copy_file(
        source.storage_path,
        target_folder,
        source.name,
        resolve_name=True,
    )
    try:
        with transaction.atomic():
            copied = _clone_file_record(
                workspace,
                source,
                target_folder,
                naming.resolve_file_name(
                    workspace,
                    target_folder.id if target_folder is not None else None,
                    name,
                ),
                storage_path,
            )
    except Exception:
        logger.exception('Copy of file %s failed, removing copied blob', file_id)
        copier.rollback()
        raise

    logger.info('File copied: %s -> %s (ID: %s)', source.id, copied.name, copied.id)
    return copied


def copy_folder(
    workspace: Workspace,
    folder_id: object,
    target: tree.FolderTarget,
) -> Folder:
    """Copy a shared folder with its whole subtree into the workspace.

    Args:
        workspace: Destination workspace.
        folder_id: Source folder, reachable through an active link.
        target: Destination folder id, ``ROOT`` or None.

    Returns:
        The new top-level Folder record.

    Raises:
        ItemNotFoundError: If the source is unknown or not shared, or the
            target does not exist.
        TreeValidationError: If the target belongs to another workspace
            or the copy would exceed the maximum depth.
        StorageOperationError: If a blob copy fails; nothing is kept.
        TreeIntegrityError: If the source subtree is corrupted.
    """
    source = _get_shared_folder(workspace, folder_id)
    target_folder = tree.resolve_target_folder(workspace, target)
    target_id = target_folder.id if target_folder is not None else None
    if tree.exceeds_max_depth(target_id, tree.subtree_height(source.id)):
        raise TreeValidationError(
            f'maximum folder depth of {settings.WORKSPACE_MAX_FOLDER_DEPTH} exceeded',
        )

    entries = tree.fetch_subtree(source.id)
    source_files = File.objects.in_bulk([
        entry.id for entry in entries if entry.kind == tree.EntryKind.FILE
    ])
    copier = _BlobCopier(workspace, _get_storage())
    try:
        with transaction.atomic():
            root_copy = Folder.objects.create(
                workspace=workspace,
                parent=target_folder,
                name=naming.resolve_folder_name(workspace, target_id, source.name),
            )
            copies: dict[uuid.UUID, Folder] = {source.id: root_copy}
            # Sorted by relative path, so parents precede their children
            for entry in entries:
                parent_copy = copies[entry.parent_id]
                if entry.kind == tree.EntryKind.FOLDER:
                    copies[entry.id] = Folder.objects.create(
                        workspace=workspace,
                        parent=parent_copy,
                        name=entry.name,
                    )
                    continue
                source_file = source_files[entry.id]
                name, storage_path = copier.copy_file(
                    source_file.storage_path,
                    parent_copy,
                    entry.name,
                    resolve_name=False,
                )
                _clone_file_record(
                    workspace,
                    source_file,
                    parent_copy,
                    name,
                    storage_path,
                )
    except Exception:
        logger.exception('Copy of folder %s failed, removing copied blobs', folder_id)
        copier.rollback()
        raise

    logger.info(
        'Folder copied: %s -> %s (ID: %s, %d entries)',
        source.id,
        root_copy.name,
        root_copy.id,
        len(entries),
    )
    return root_copy


def copy_items_to_workspace(
    workspace: Workspace,
    file_ids: Iterable[object],
    folder_ids: Iterable[object],
    target: tree.FolderTarget,
) -> BulkResult:
    """Copy shared items into the workspace, each independently.

    Args:
        workspace: Destination workspace.
        file_ids: Shared files to copy.
        folder_ids: Shared folders to copy.
        target: Destination folder id, ``ROOT`` or None.

    Returns:
        BulkResult with per-item outcomes.

    Raises:
        TreeValidationError: If the request exceeds the bulk item limit.
    """
    plan = plan_bulk(None, file_ids, folder_ids)
    result = BulkResult()
    for folder_id in plan.folders:
        run_item(
            result,
            folder_id,
            ItemType.FOLDER,
            lambda item=folder_id: copy_folder(workspace, item, target),
        )
    for file_id in plan.files:
        run_item(
            result,
            file_id,
            ItemType.FILE,
            lambda item=file_id: copy_file(workspace, item, target),
        )
    result.settle_nested(plan.nested)

    logger.info('Bulk copy finished: %s', result.summary('Copied'))
    return result
