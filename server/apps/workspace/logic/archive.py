"""Zip archives of a folder's full content."""

import logging
import shutil
import zipfile
from tempfile import SpooledTemporaryFile
from typing import IO, TYPE_CHECKING

from django.conf import settings
from django.core.files.storage import default_storage

from server.apps.workspace.exceptions import (
    ArchiveBuildError,
    WorkspaceOperationError,
)
from server.apps.workspace.logic import tree
from server.apps.workspace.models import Folder, Workspace

if TYPE_CHECKING:
    from server.apps.workspace.infrastructure.storage import FileStorage

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    return default_storage  # type: ignore[return-value]


def archive_filename(folder: Folder) -> str:
    """Return the download filename of a folder archive.

    Example: 'Résumés 2024' -> 'Résumés 2024.zip'
    """
    return f'{folder.name}.zip'


def _childless_folders(entries: list[tree.SubtreeEntry]) -> list[tree.SubtreeEntry]:
    """Pick folders with no file anywhere below them."""
    with_files = set()
    for entry in entries:
        if entry.kind == tree.EntryKind.FILE:
            parts = entry.relative_path.split('/')[:-1]
            for index in range(1, len(parts) + 1):
                with_files.add('/'.join(parts[:index]))
    return [
        entry for entry in entries
        if entry.kind == tree.EntryKind.FOLDER
        and entry.relative_path not in with_files
    ]


def _write_entries(
    archive: zipfile.ZipFile,
    entries: list[tree.SubtreeEntry],
    storage: 'FileStorage',
) -> int:
    for folder_entry in _childless_folders(entries):
        archive.mkdir(folder_entry.relative_path)

    written = 0
    for entry in entries:
        if entry.kind != tree.EntryKind.FILE:
            continue
        with storage.open(entry.storage_path, 'rb') as blob:
            with archive.open(entry.relative_path, 'w', force_zip64=True) as target:
                shutil.copyfileobj(blob, target)
        written += 1
    return written


def build_archive(workspace: Workspace, folder_id: object) -> IO[bytes]:
    """Package everything below a folder into a zip archive.

    Entries use display names and paths relative to the folder, so
    non-ASCII names come out as users see them (zip stores them as
    UTF-8). Folders without any file below them get an explicit
    directory entry. Either the whole archive is produced or nothing.

    Args:
        workspace: Owning workspace.
        folder_id: Folder to package.

    Returns:
        Binary file object positioned at the start of the zip data;
        the caller closes it.

    Raises:
        ItemNotFoundError: If the folder is not in the workspace.
        ArchiveBuildError: If the subtree query, a blob read or the zip
            writing fails.
    """
    folder = tree.get_folder(workspace, folder_id)
    try:
        entries = tree.fetch_subtree(folder.id)
    except WorkspaceOperationError as exc:
        raise ArchiveBuildError(folder.id, exc.reason) from exc
    except Exception as exc:
        logger.exception('Subtree query failed for folder %s', folder.id)
        raise ArchiveBuildError(folder.id, 'descendant query failed') from exc

    buffer = SpooledTemporaryFile(  # noqa: SIM115
        max_size=settings.WORKSPACE_ARCHIVE_SPOOL_BYTES,
    )
    try:
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
            written = _write_entries(archive, entries, _get_storage())
    except Exception as exc:
        buffer.close()
        logger.exception('Archive build failed for folder %s', folder.id)
        raise ArchiveBuildError(folder.id, str(exc) or type(exc).__name__) from exc

    buffer.seek(0)
    logger.info(
        'Archive built for folder %s: %d files, %d entries',
        folder.id,
        written,
        len(entries),
    )
    return buffer
