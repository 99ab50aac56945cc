"""Exceptions for workspace app.

Every failure the engine reports to a caller derives from
:class:`WorkspaceOperationError` and carries a machine-readable ``kind``
so bulk operations can aggregate per-item outcomes.
"""

import enum
from typing import ClassVar


class ErrorKind(enum.StrEnum):
    """Category of a failed workspace operation."""

    VALIDATION = 'validation'
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    STORAGE = 'storage'
    INTEGRITY = 'integrity'
    INTERNAL = 'internal'


class WorkspaceOperationError(Exception):
    """Base class for recoverable workspace operation failures."""

    kind: ClassVar[ErrorKind] = ErrorKind.INTERNAL

    def __init__(self, reason: str) -> None:
        """Initialize error with a short human-readable reason.

        Args:
            reason: Why the operation failed (e.g., 'circular reference').
        """
        self.reason = reason
        super().__init__(reason)


class TreeValidationError(WorkspaceOperationError):
    """Raised when a request is rejected before any write happens.

    Covers circular moves, depth overflow, cross-workspace targets,
    invalid names and incompatible drop targets.
    """

    kind = ErrorKind.VALIDATION


class ItemNotFoundError(WorkspaceOperationError):
    """Raised when a folder, file or link id does not resolve."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, item_type: str, item_id: object) -> None:
        """Initialize ItemNotFoundError.

        Args:
            item_type: Entity name ('folder', 'file' or 'link').
            item_id: Identifier that failed to resolve.
        """
        self.item_type = item_type
        self.item_id = item_id
        super().__init__(f'{item_type} not found')


class SlugConflictError(WorkspaceOperationError):
    """Raised when every candidate link slug is already taken."""

    kind = ErrorKind.CONFLICT

    def __init__(self, base_slug: str, attempts: int) -> None:
        """Initialize SlugConflictError.

        Args:
            base_slug: First slug candidate.
            attempts: Number of candidates tried.
        """
        self.base_slug = base_slug
        self.attempts = attempts
        super().__init__(
            f'no available slug for {base_slug!r} after {attempts} attempts',
        )


class StorageOperationError(WorkspaceOperationError):
    """Raised when a blob operation fails for a reason other than absence.

    The metadata record that points at the blob is always retained.
    """

    kind = ErrorKind.STORAGE

    def __init__(self, storage_path: str, reason: str = 'storage failure') -> None:
        """Initialize StorageOperationError.

        Args:
            storage_path: Blob path the operation targeted.
            reason: Short description of the failure.
        """
        self.storage_path = storage_path
        super().__init__(reason)


class TreeIntegrityError(WorkspaceOperationError):
    """Raised when stored parent references form a cycle or run too deep."""

    kind = ErrorKind.INTEGRITY


class ArchiveBuildError(WorkspaceOperationError):
    """Raised when a folder archive cannot be produced in full."""

    kind = ErrorKind.INTEGRITY

    def __init__(self, folder_id: object, reason: str) -> None:
        """Initialize ArchiveBuildError.

        Args:
            folder_id: Folder whose archive was requested.
            reason: Description of the failure.
        """
        self.folder_id = folder_id
        super().__init__(f'cannot build archive for folder {folder_id}: {reason}')
