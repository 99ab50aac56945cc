"""Business logic for creating, uploading and listing workspace items."""

import dataclasses
import logging
from typing import TYPE_CHECKING, BinaryIO

from django.conf import settings
from django.core.files.base import File as DjangoFile
from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.workspace.exceptions import (
    StorageOperationError,
    TreeValidationError,
)
from server.apps.workspace.infrastructure.metadata import (
    build_storage_path,
    calculate_checksum,
    detect_mime_type,
    get_file_size,
    validate_item_name,
)
from server.apps.workspace.logic import naming, tree
from server.apps.workspace.models import File, Folder, Workspace

if TYPE_CHECKING:
    from server.apps.workspace.infrastructure.storage import FileStorage

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


@dataclasses.dataclass(frozen=True, slots=True)
class FolderListing:
    """Direct children of a folder (or of the workspace root)."""

    folder: Folder | None
    folders: list[Folder]
    files: list[File]


def create_folder(
    workspace: Workspace,
    name: str,
    parent: tree.FolderTarget = tree.ROOT,
) -> Folder:
    """Create a folder, renaming it if a sibling already uses the name.

    Args:
        workspace: Owning workspace.
        name: Requested display name.
        parent: Parent folder id, ``ROOT`` or None.

    Returns:
        Created Folder instance.

    Raises:
        TreeValidationError: If the name is invalid, the parent belongs
            to another workspace or the depth limit would be exceeded.
        ItemNotFoundError: If the parent does not exist.
    """
    desired_name = validate_item_name(name)

    with transaction.atomic():
        parent_folder = tree.resolve_target_folder(workspace, parent, lock=True)
        parent_id = parent_folder.id if parent_folder is not None else None
        if tree.exceeds_max_depth(parent_id):
            raise TreeValidationError(
                f'maximum folder depth of {settings.WORKSPACE_MAX_FOLDER_DEPTH} exceeded',
            )
        unique_name = naming.resolve_folder_name(
            workspace,
            parent_id,
            desired_name,
        )
        folder = Folder.objects.create(
            workspace=workspace,
            parent=parent_folder,
            name=unique_name,
        )

    logger.info(
        'Folder created: %s (ID: %s, parent: %s)',
        folder.name,
        folder.id,
        parent_id or tree.ROOT,
    )
    return folder


def upload_file(  # noqa: WPS211
    workspace: Workspace,
    file_obj: BinaryIO | DjangoFile,
    name: str,
    folder: tree.FolderTarget = tree.ROOT,
    *,
    uploader_email: str = '',
    uploader_name: str = '',
) -> File:
    """Upload file to storage and create database record.

    Transaction safety: Upload to storage first, then create DB record.
    If DB transaction fails, the uploaded file is deleted from storage
    (rollback).

    Args:
        workspace: Owning workspace.
        file_obj: File-like object to upload.
        name: Requested display name.
        folder: Destination folder id, ``ROOT`` or None.
        uploader_email: Attribution for uploads through a shared link.
        uploader_name: Attribution for uploads through a shared link.

    Returns:
        Created File instance.

    Raises:
        TreeValidationError: If the name or destination is invalid.
        ItemNotFoundError: If the destination folder does not exist.
        StorageOperationError: If the blob could not be written.
    """
    desired_name = validate_item_name(name)
    target = tree.resolve_target_folder(workspace, folder)
    folder_id = target.id if target is not None else None

    storage = _get_storage()
    unique_name = naming.resolve_file_name(
        workspace,
        folder_id,
        desired_name,
        blob_exists=storage.exists,
    )
    storage_path = build_storage_path(workspace.id, folder_id, unique_name)

    # Calculate metadata
    logger.info('Calculating metadata for file: %s', storage_path)
    checksum = calculate_checksum(file_obj)
    mime_type = detect_mime_type(unique_name)
    file_size = get_file_size(file_obj)

    # Step 1: Upload to storage first
    try:
        saved_name = storage.save(storage_path, file_obj)
    except Exception as exc:
        raise StorageOperationError(
            storage_path,
            f'blob upload failed: {exc}',
        ) from exc

    # Step 2: Create database record (in transaction)
    try:
        with transaction.atomic():
            if target is not None:
                # Folder may have been deleted while the blob was uploading
                tree.get_folder(workspace, target.id, lock=True)
            # Check again: a concurrent upload may have taken the name
            final_name = naming.resolve_file_name(
                workspace,
                folder_id,
                unique_name,
            )
            file_instance = File.objects.create(
                workspace=workspace,
                folder=target,
                name=final_name,
                size_bytes=file_size,
                mime_type=mime_type,
                checksum_sha256=checksum,
                storage_path=saved_name,
                uploader_email=uploader_email,
                uploader_name=uploader_name,
            )
    except Exception:
        # Rollback: Delete file from storage since DB transaction failed
        logger.exception(
            'Database transaction failed, rolling back storage upload: %s',
            saved_name,
        )
        storage.rollback_upload(saved_name)
        raise

    logger.info(
        'File record created in database: %s (ID: %s)',
        saved_name,
        file_instance.id,
    )
    return file_instance


def get_download_url(workspace: Workspace, file_id: object) -> str:
    """Get a time-limited download URL for a file.

    Args:
        workspace: Owning workspace.
        file_id: File identifier.

    Returns:
        Presigned URL valid for ``WORKSPACE_DOWNLOAD_URL_EXPIRY`` seconds.

    Raises:
        ItemNotFoundError: If the file is not in the workspace.
    """
    file_instance = tree.get_file(workspace, file_id)
    return _get_storage().download_url(
        file_instance.storage_path,
        expire=settings.WORKSPACE_DOWNLOAD_URL_EXPIRY,
    )


def list_folder(
    workspace: Workspace,
    folder: tree.FolderTarget = tree.ROOT,
) -> FolderListing:
    """List the direct children of a folder.

    Args:
        workspace: Owning workspace.
        folder: Folder id, ``ROOT`` or None.

    Returns:
        Subfolders and files, each ordered by name.

    Raises:
        ItemNotFoundError: If the folder is not in the workspace.
    """
    if tree.is_root_target(folder):
        current = None
        folders = Folder.objects.filter(workspace=workspace, parent__isnull=True)
        files = File.objects.filter(workspace=workspace, folder__isnull=True)
    else:
        current = tree.get_folder(workspace, folder)
        folders = current.children.all()
        files = current.files.all()

    logger.debug('Listing folder: %s', current.id if current else tree.ROOT)
    return FolderListing(
        folder=current,
        folders=list(folders.select_related('link').order_by('name')),
        files=list(files.order_by('name')),
    )
