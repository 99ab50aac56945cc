"""Tree validation and recursive queries over a workspace's folders.

Every ancestry or descendant question is answered with a single
``WITH RECURSIVE`` query (supported by SQLite and PostgreSQL) instead of
walking the tree one level per query. Each recursion carries a depth
counter and stops past the configured maximum, so a corrupted parent
chain surfaces as :class:`TreeIntegrityError` instead of looping.
"""

import dataclasses
import enum
import logging
import uuid
from typing import Final

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import connection

from server.apps.workspace.exceptions import (
    ItemNotFoundError,
    TreeIntegrityError,
    TreeValidationError,
)
from server.apps.workspace.models import File, Folder, Workspace

logger = logging.getLogger(__name__)

ROOT: Final = 'root'

FolderTarget = uuid.UUID | str | None

_ANCESTORS_SQL: Final = """
WITH RECURSIVE ancestors(id, parent_id, depth) AS (
    SELECT id, parent_id, 0 FROM {folders} WHERE id = %s
    UNION ALL
    SELECT f.id, f.parent_id, a.depth + 1
    FROM {folders} f
    JOIN ancestors a ON f.id = a.parent_id
    WHERE a.depth < %s
)
SELECT id, parent_id, depth FROM ancestors ORDER BY depth
"""

_DESCENDANT_FOLDERS_SQL: Final = """
WITH RECURSIVE subtree(id, depth) AS (
    SELECT id, 0 FROM {folders} WHERE id = %s
    UNION ALL
    SELECT f.id, s.depth + 1
    FROM {folders} f
    JOIN subtree s ON f.parent_id = s.id
    WHERE s.depth < %s
)
SELECT id, depth FROM subtree WHERE depth > 0 ORDER BY depth
"""

# Folder rows and file rows in one round trip, paths relative to the root
_SUBTREE_SQL: Final = """
WITH RECURSIVE subtree(id, parent_id, name, rel_path, depth) AS (
    SELECT id, parent_id, name, CAST('' AS TEXT), 0
    FROM {folders}
    WHERE id = %s
    UNION ALL
    SELECT
        f.id,
        f.parent_id,
        f.name,
        CAST(
            CASE WHEN s.depth = 0 THEN f.name
            ELSE s.rel_path || '/' || f.name END
            AS TEXT
        ),
        s.depth + 1
    FROM {folders} f
    JOIN subtree s ON f.parent_id = s.id
    WHERE s.depth < %s
)
SELECT
    'folder',
    s.id,
    s.parent_id,
    s.name,
    s.rel_path,
    s.depth,
    CAST(NULL AS TEXT)
FROM subtree s
WHERE s.depth > 0
UNION ALL
SELECT
    'file',
    fi.id,
    fi.folder_id,
    fi.name,
    CAST(
        CASE WHEN s.depth = 0 THEN fi.name
        ELSE s.rel_path || '/' || fi.name END
        AS TEXT
    ),
    s.depth + 1,
    CAST(fi.storage_path AS TEXT)
FROM {files} fi
JOIN subtree s ON fi.folder_id = s.id
"""


class EntryKind(enum.StrEnum):
    """Kind of a node returned by :func:`fetch_subtree`."""

    FOLDER = 'folder'
    FILE = 'file'


@dataclasses.dataclass(frozen=True, slots=True)
class SubtreeEntry:
    """One descendant of a folder with its path relative to that folder."""

    kind: EntryKind
    id: uuid.UUID
    parent_id: uuid.UUID
    name: str
    relative_path: str
    depth: int
    storage_path: str | None = None


def is_root_target(target: FolderTarget) -> bool:
    """Check whether a target designates the workspace root.

    Args:
        target: Folder id, ``ROOT`` sentinel or None.

    Returns:
        True for ``ROOT`` and None.
    """
    return target is None or target == ROOT


def _max_depth() -> int:
    return settings.WORKSPACE_MAX_FOLDER_DEPTH


def _db_id(folder_id: object) -> object:
    return Folder._meta.pk.get_db_prep_value(folder_id, connection)


def _to_uuid(raw_id: object) -> uuid.UUID:
    return Folder._meta.pk.to_python(raw_id)


def get_folder(
    workspace: Workspace,
    folder_id: object,
    *,
    lock: bool = False,
) -> Folder:
    """Fetch a folder of the workspace.

    Args:
        workspace: Owning workspace.
        folder_id: Folder identifier (UUID or its string form).
        lock: Take a row lock (``SELECT ... FOR UPDATE``); only
            meaningful inside ``transaction.atomic``.

    Returns:
        Folder instance.

    Raises:
        ItemNotFoundError: If the id is malformed, unknown or belongs to
            another workspace.
    """
    queryset = Folder.objects.select_related('link')
    if lock:
        queryset = Folder.objects.select_for_update()
    try:
        return queryset.get(id=folder_id, workspace=workspace)
    except (Folder.DoesNotExist, ValidationError, ValueError):
        raise ItemNotFoundError('folder', folder_id) from None


def get_file(
    workspace: Workspace,
    file_id: object,
    *,
    lock: bool = False,
) -> File:
    """Fetch a file record of the workspace.

    Args:
        workspace: Owning workspace.
        file_id: File identifier.
        lock: Take a row lock.

    Returns:
        File instance.

    Raises:
        ItemNotFoundError: If the id is malformed, unknown or belongs to
            another workspace.
    """
    queryset = File.objects.all()
    if lock:
        queryset = queryset.select_for_update()
    try:
        return queryset.get(id=file_id, workspace=workspace)
    except (File.DoesNotExist, ValidationError, ValueError):
        raise ItemNotFoundError('file', file_id) from None


def resolve_target_folder(
    workspace: Workspace,
    target: FolderTarget,
    *,
    lock: bool = False,
) -> Folder | None:
    """Resolve a move / create destination.

    Args:
        workspace: Workspace the operation runs in.
        target: Folder id, ``ROOT`` sentinel or None.
        lock: Take a row lock on the target folder.

    Returns:
        Target folder, or None for the workspace root.

    Raises:
        ItemNotFoundError: If the target folder does not exist.
        TreeValidationError: If the target belongs to another workspace.
    """
    if is_root_target(target):
        return None
    queryset = Folder.objects.select_for_update() if lock else Folder.objects
    try:
        folder = queryset.get(id=target)
    except (Folder.DoesNotExist, ValidationError, ValueError):
        raise ItemNotFoundError('folder', target) from None
    if folder.workspace_id != workspace.id:
        logger.warning(
            'Rejected cross-workspace target: folder %s not in workspace %s',
            folder.id,
            workspace.id,
        )
        raise TreeValidationError('target folder belongs to another workspace')
    return folder


def lock_folders(*folder_ids: uuid.UUID | None) -> dict[uuid.UUID, Folder]:
    """Lock folder rows in primary key order.

    Transactions locking overlapping folders always take the locks in
    the same order, so two opposite moves wait on each other instead of
    deadlocking. Must run inside ``transaction.atomic``.

    Args:
        folder_ids: Folders to lock; None entries (root) are skipped.

    Returns:
        Locked folders by id, fresh from the database. Folders deleted
        in the meantime are missing.
    """
    ids = sorted({folder_id for folder_id in folder_ids if folder_id is not None})
    queryset = Folder.objects.select_for_update().filter(id__in=ids).order_by('pk')
    return {folder.id: folder for folder in queryset}


def get_ancestor_ids(folder_id: object) -> list[uuid.UUID]:
    """Return the parent chain of a folder, the folder itself first.

    Example: for /A/B/C, ``get_ancestor_ids(C) == [C, B, A]``

    Args:
        folder_id: Folder identifier.

    Returns:
        Folder ids from ``folder_id`` up to its root-level ancestor;
        empty if the folder does not exist.

    Raises:
        TreeIntegrityError: If the chain revisits a folder or is longer
            than the configured maximum depth.
    """
    limit = _max_depth()
    sql = _ANCESTORS_SQL.format(folders=Folder._meta.db_table)
    with connection.cursor() as cursor:
        cursor.execute(sql, [_db_id(folder_id), limit])
        rows = cursor.fetchall()

    if not rows:
        return []

    chain = [_to_uuid(row[0]) for row in rows]
    last_parent = rows[-1][1]
    if len(set(chain)) != len(chain):
        raise TreeIntegrityError(f'cycle in parent chain of folder {folder_id}')
    # Recursion stopped at the guard before reaching a root-level folder
    if last_parent is not None or len(chain) > limit:
        raise TreeIntegrityError(
            f'parent chain of folder {folder_id} exceeds {limit} levels',
        )
    return chain


def get_depth(folder_id: FolderTarget) -> int:
    """Return the depth of a folder (root sentinel 0, top level 1).

    Args:
        folder_id: Folder id, ``ROOT`` or None.

    Returns:
        Number of folders on the chain from root to ``folder_id``.
    """
    if is_root_target(folder_id):
        return 0
    return len(get_ancestor_ids(folder_id))


def get_descendant_folder_ids(folder_id: object) -> dict[uuid.UUID, int]:
    """Return every descendant folder with its depth below ``folder_id``.

    Args:
        folder_id: Subtree root.

    Returns:
        Mapping of folder id to relative depth (children are 1), in
        breadth-first order.

    Raises:
        TreeIntegrityError: If the descendants form a cycle or run
            deeper than the configured maximum.
    """
    limit = _max_depth()
    sql = _DESCENDANT_FOLDERS_SQL.format(folders=Folder._meta.db_table)
    with connection.cursor() as cursor:
        cursor.execute(sql, [_db_id(folder_id), limit])
        rows = cursor.fetchall()

    descendants: dict[uuid.UUID, int] = {}
    for raw_id, depth in rows:
        descendant_id = _to_uuid(raw_id)
        if descendant_id in descendants or depth >= limit:
            raise TreeIntegrityError(
                f'descendants of folder {folder_id} form a cycle or run too deep',
            )
        descendants[descendant_id] = depth
    return descendants


def subtree_height(folder_id: object) -> int:
    """Return how many levels of folders hang below ``folder_id``.

    Args:
        folder_id: Subtree root.

    Returns:
        0 for a folder without subfolders.
    """
    return max(get_descendant_folder_ids(folder_id).values(), default=0)


def would_create_cycle(moving_folder_id: object, target: FolderTarget) -> bool:
    """Check whether reparenting would put a folder inside itself.

    Walks up from the target: the move is circular when the moving
    folder appears on the target's parent chain (target included).

    Args:
        moving_folder_id: Folder being moved.
        target: New parent id, ``ROOT`` or None.

    Returns:
        True if the move must be rejected.
    """
    if is_root_target(target):
        return False
    return _to_uuid(moving_folder_id) in get_ancestor_ids(target)


def exceeds_max_depth(target: FolderTarget, subtree_levels: int = 0) -> bool:
    """Check whether placing a folder under ``target`` breaks the depth limit.

    Args:
        target: New parent id, ``ROOT`` or None.
        subtree_levels: Height of the subtree travelling with the folder
            (0 for a new or leaf folder).

    Returns:
        True if the deepest folder would end up below the maximum depth.
    """
    return get_depth(target) + 1 + subtree_levels > _max_depth()


def validate_folder_move(folder: Folder, target: Folder | None) -> None:
    """Run every pre-write check of a folder move.

    Args:
        folder: Folder being moved.
        target: New parent, None for the workspace root.

    Raises:
        TreeValidationError: On circular reference or depth overflow.
    """
    target_id = target.id if target is not None else None
    if would_create_cycle(folder.id, target_id):
        raise TreeValidationError('circular reference')
    if exceeds_max_depth(target_id, subtree_height(folder.id)):
        raise TreeValidationError(
            f'maximum folder depth of {_max_depth()} exceeded',
        )


def fetch_subtree(folder_id: object) -> list[SubtreeEntry]:
    """Fetch every folder and file below a folder in one query.

    Relative paths use display names joined with '/' and do not include
    the name of ``folder_id`` itself.

    Args:
        folder_id: Subtree root.

    Returns:
        Entries sorted by relative path.

    Raises:
        TreeIntegrityError: If the stored tree is cyclic or too deep.
    """
    limit = _max_depth()
    sql = _SUBTREE_SQL.format(
        folders=Folder._meta.db_table,
        files=File._meta.db_table,
    )
    with connection.cursor() as cursor:
        cursor.execute(sql, [_db_id(folder_id), limit])
        rows = cursor.fetchall()

    entries = []
    seen_folders: set[uuid.UUID] = set()
    for kind, raw_id, raw_parent, name, relative_path, depth, storage_path in rows:
        entry = SubtreeEntry(
            kind=EntryKind(kind),
            id=_to_uuid(raw_id),
            parent_id=_to_uuid(raw_parent),
            name=name,
            relative_path=relative_path,
            depth=depth,
            storage_path=storage_path,
        )
        if entry.kind == EntryKind.FOLDER:
            if entry.id in seen_folders or depth >= limit:
                raise TreeIntegrityError(
                    f'subtree of folder {folder_id} forms a cycle or runs too deep',
                )
            seen_folders.add(entry.id)
        entries.append(entry)

    entries.sort(key=lambda entry: entry.relative_path)
    return entries


def breadcrumbs(workspace: Workspace, folder_id: FolderTarget) -> list[Folder]:
    """Return the folders from the root down to ``folder_id``.

    Args:
        workspace: Owning workspace.
        folder_id: Current folder, ``ROOT`` or None.

    Returns:
        Folders root-first; empty at the workspace root.

    Raises:
        ItemNotFoundError: If the folder is not in the workspace.
    """
    if is_root_target(folder_id):
        return []
    folder = get_folder(workspace, folder_id)
    chain = get_ancestor_ids(folder.id)
    by_id = Folder.objects.filter(workspace=workspace).in_bulk(chain)
    return [by_id[ancestor_id] for ancestor_id in reversed(chain)]
