"""Database models for workspace app."""

import uuid
from pathlib import Path
from typing import ClassVar, Final, final

from typing_extensions import override

from django.conf import settings
from django.db import models

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length
_SLUG_MAX_LENGTH: Final = 100
_STORAGE_PATH_MAX_LENGTH: Final = 1024


@final
class Workspace(models.Model):
    """Root scope owning every folder, file and link of one user.

    Provisioned together with the user account (see signals.py) and
    never deleted while the user exists.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='workspace',
    )

    name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        default='My Files',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Workspace'  # type: ignore[mutable-override]
        verbose_name_plural = 'Workspaces'  # type: ignore[mutable-override]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.get_username()}:{self.name}'


@final
class Link(models.Model):
    """Shareable access object a folder can be bound to.

    A link is either Unbound (``is_active=False``, no folder references
    it) or Active (``is_active=True``, exactly one folder references it).
    Unbinding deactivates the link instead of deleting it so the URL can
    be reused later.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name='links',
        db_index=True,
    )

    slug = models.SlugField(
        max_length=_SLUG_MAX_LENGTH,
        unique=True,
        help_text='Public URL component',
    )

    title = models.CharField(max_length=_NAME_MAX_LENGTH)

    is_public = models.BooleanField(default=True)

    is_active = models.BooleanField(
        default=False,
        db_index=True,
        help_text='True while a folder is bound to this link',
    )

    allowed_emails = models.JSONField(
        default=list,
        blank=True,
        help_text='Recipients allowed to access a non-public link',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Link'  # type: ignore[mutable-override]
        verbose_name_plural = 'Links'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

    @override
    def __str__(self) -> str:
        """String representation."""
        state = 'active' if self.is_active else 'unbound'
        return f'{self.slug} ({state})'


@final
class Folder(models.Model):
    """Node of a workspace's folder tree.

    ``parent`` is NULL for root-level folders. Tree edges use RESTRICT so
    that a folder can only disappear through the storage-first cascade in
    ``logic.mutations.delete_folder``; deleting the whole workspace still
    cascades.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name='folders',
        db_index=True,
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.RESTRICT,
        related_name='children',
        null=True,
        blank=True,
    )

    # One-to-one: at most one folder may reference a given link
    link = models.OneToOneField(
        Link,
        on_delete=models.SET_NULL,
        related_name='folder',
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Folder'  # type: ignore[mutable-override]
        verbose_name_plural = 'Folders'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        indexes: ClassVar[list[models.Index]] = [
            # Optimize sibling listing and name collision checks
            models.Index(
                fields=['workspace', 'parent'],
                name='folders_workspace_parent_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return self.name

    def is_root_level(self) -> bool:
        """Check whether folder sits directly under the workspace root.

        Returns:
            True if folder has no parent.
        """
        return self.parent_id is None

    def is_shared(self) -> bool:
        """Check whether folder itself is bound to an active link.

        Returns:
            True if a link is bound and active.
        """
        return self.link is not None and self.link.is_active


@final
class File(models.Model):
    """Uploaded file stored as a blob in S3-compatible storage.

    ``storage_path`` is the blob key and never changes after upload:
    moving a file only changes ``folder``. The display ``name`` is what
    users see, in listings and inside archives.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    workspace = models.ForeignKey(
        Workspace,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    folder = models.ForeignKey(
        Folder,
        on_delete=models.RESTRICT,
        related_name='files',
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    size_bytes = models.BigIntegerField(
        help_text='File size in bytes',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        help_text='MIME type guessed from the display name',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        help_text='SHA256 hash for integrity verification',
        db_index=True,
    )

    storage_path = models.CharField(
        max_length=_STORAGE_PATH_MAX_LENGTH,
        unique=True,
        help_text='Blob key: {workspace_id}/{folder_id|root}/{encoded name}',
    )

    # Attribution for files that arrived through a shared link
    uploader_email = models.EmailField(blank=True, default='')
    uploader_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    uploaded_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['name']

        indexes: ClassVar[list[models.Index]] = [
            # Optimize directory listing and name collision checks
            models.Index(
                fields=['workspace', 'folder'],
                name='files_workspace_folder_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return self.name

    def get_extension(self) -> str:
        """Extract file extension.

        Example: 'report.PDF' -> 'pdf'

        Returns:
            Extension without dot (lowercase).
        """
        extension = Path(self.name).suffix
        return extension.lstrip('.').lower()

    def is_external_upload(self) -> bool:
        """Check whether file arrived through a shared link.

        Returns:
            True if uploader attribution is present.
        """
        return bool(self.uploader_email or self.uploader_name)
