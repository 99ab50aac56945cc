"""Unique name resolution for folders, files and link slugs."""

import logging
from collections.abc import Callable, Iterator

from django.db.models import Q

from server.apps.workspace.infrastructure.metadata import (
    build_storage_path,
    split_name,
)
from server.apps.workspace.models import File, Folder, Workspace

logger = logging.getLogger(__name__)

ExistsCheck = Callable[[str], bool]


def name_candidates(desired_name: str, *, split_extension: bool = True) -> Iterator[str]:
    """Yield the desired name followed by numbered alternatives.

    Example: 'a.txt' -> 'a.txt', 'a (1).txt', 'a (2).txt', ...

    Args:
        desired_name: Name the caller asked for.
        split_extension: Keep the extension after the counter (files).
            Folders pass False so 'v1.2' becomes 'v1.2 (1)'.

    Yields:
        Candidate names, unbounded.
    """
    yield desired_name

    if split_extension:
        stem, extension = split_name(desired_name)
    else:
        stem, extension = desired_name, ''

    counter = 1
    while True:
        yield f'{stem} ({counter}){extension}'
        counter += 1


def resolve_unique_name(
    desired_name: str,
    exists: ExistsCheck,
    *,
    split_extension: bool = True,
) -> str:
    """Return the first candidate name no source reports as taken.

    Args:
        desired_name: Name the caller asked for.
        exists: Collision check; must return True if any source
            (metadata, blob store, ...) already uses the candidate.
        split_extension: See :func:`name_candidates`.

    Returns:
        ``desired_name`` unchanged if free, otherwise the first free
        numbered alternative.
    """
    for attempt, candidate in enumerate(
        name_candidates(desired_name, split_extension=split_extension),
    ):
        if not exists(candidate):
            if attempt:
                logger.debug(
                    'Resolved name conflict: %s -> %s (%d attempts)',
                    desired_name,
                    candidate,
                    attempt + 1,
                )
            return candidate
    raise AssertionError('name_candidates is unbounded')  # pragma: no cover


def any_source(*checks: ExistsCheck) -> ExistsCheck:
    """Combine collision checks: taken if any source says so.

    Args:
        checks: Independent collision checks.

    Returns:
        Combined check.
    """
    def _exists(candidate: str) -> bool:
        return any(check(candidate) for check in checks)

    return _exists


def _parent_filter(field: str, parent_id: object | None) -> Q:
    if parent_id is None:
        return Q(**{f'{field}__isnull': True})
    return Q(**{f'{field}_id': parent_id})


def folder_name_taken(
    workspace: Workspace,
    parent_id: object | None,
    *,
    exclude_id: object | None = None,
) -> ExistsCheck:
    """Build a case-insensitive sibling check for folder names.

    Args:
        workspace: Owning workspace.
        parent_id: Parent folder id, None for root level.
        exclude_id: Folder to ignore (the one being moved).

    Returns:
        Collision check over sibling folders.
    """
    siblings = Folder.objects.filter(
        _parent_filter('parent', parent_id),
        workspace=workspace,
    )
    if exclude_id is not None:
        siblings = siblings.exclude(id=exclude_id)

    def _exists(candidate: str) -> bool:
        return siblings.filter(name__iexact=candidate).exists()

    return _exists


def file_name_taken(
    workspace: Workspace,
    folder_id: object | None,
    *,
    exclude_id: object | None = None,
) -> ExistsCheck:
    """Build a case-insensitive sibling check for file names.

    Args:
        workspace: Owning workspace.
        folder_id: Containing folder id, None for root level.
        exclude_id: File to ignore (the one being moved).

    Returns:
        Collision check over sibling file records.
    """
    siblings = File.objects.filter(
        _parent_filter('folder', folder_id),
        workspace=workspace,
    )
    if exclude_id is not None:
        siblings = siblings.exclude(id=exclude_id)

    def _exists(candidate: str) -> bool:
        return siblings.filter(name__iexact=candidate).exists()

    return _exists


def blob_path_taken(
    workspace: Workspace,
    folder_id: object | None,
    blob_exists: Callable[[str], bool],
) -> ExistsCheck:
    """Build a check against the physical blob store.

    A name can look free in metadata but already occupy a blob path
    after an abandoned upload; writing there would collide.

    Args:
        workspace: Owning workspace.
        folder_id: Containing folder id, None for root level.
        blob_exists: Storage existence check (``storage.exists``).

    Returns:
        Collision check over blob paths.
    """
    def _exists(candidate: str) -> bool:
        storage_path = build_storage_path(workspace.id, folder_id, candidate)
        return blob_exists(storage_path) or File.objects.filter(
            storage_path=storage_path,
        ).exists()

    return _exists


def resolve_folder_name(
    workspace: Workspace,
    parent_id: object | None,
    desired_name: str,
    *,
    exclude_id: object | None = None,
) -> str:
    """Resolve a unique folder name among the siblings under a parent.

    Args:
        workspace: Owning workspace.
        parent_id: Parent folder id, None for root level.
        desired_name: Requested name.
        exclude_id: Folder to ignore (the one being moved).

    Returns:
        Unique name.
    """
    return resolve_unique_name(
        desired_name,
        folder_name_taken(workspace, parent_id, exclude_id=exclude_id),
        split_extension=False,
    )


def resolve_file_name(
    workspace: Workspace,
    folder_id: object | None,
    desired_name: str,
    *,
    exclude_id: object | None = None,
    blob_exists: Callable[[str], bool] | None = None,
) -> str:
    """Resolve a unique file name in a folder.

    Args:
        workspace: Owning workspace.
        folder_id: Containing folder id, None for root level.
        desired_name: Requested name.
        exclude_id: File to ignore (the one being moved).
        blob_exists: When a new blob will be written, the storage check
            so that blob paths are checked too.

    Returns:
        Unique name.
    """
    exists = file_name_taken(workspace, folder_id, exclude_id=exclude_id)
    if blob_exists is not None:
        exists = any_source(
            exists,
            blob_path_taken(workspace, folder_id, blob_exists),
        )
    return resolve_unique_name(desired_name, exists)


def slug_candidates(base_slug: str, attempts: int) -> Iterator[str]:
    """Yield a bounded sequence of link slug candidates.

    Example: ('docs-link', 3) -> 'docs-link', 'docs-link-2', 'docs-link-3'

    Args:
        base_slug: First candidate.
        attempts: Total number of candidates to yield.

    Yields:
        Slug candidates.
    """
    yield base_slug
    for counter in range(2, attempts + 1):
        yield f'{base_slug}-{counter}'
