"""Django admin configuration for workspace app."""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.workspace.logic.mutations import bulk_delete
from server.apps.workspace.models import File, Folder, Link, Workspace


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < 1024:
        return f'{size_bytes} B'
    if size_bytes < 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / 1024:.1f} KB'
    if size_bytes < 1024 * 1024 * 1024:  # noqa: WPS531
        return f'{size_bytes / (1024 * 1024):.1f} MB'
    return f'{size_bytes / (1024 * 1024 * 1024):.1f} GB'


@admin.register(Workspace)
class WorkspaceAdmin(admin.ModelAdmin[Workspace]):
    """Admin interface for Workspace model."""

    list_display = ['name', 'user', 'folder_count', 'file_count', 'created_at']
    search_fields = ['user__username', 'user__email']
    readonly_fields = ['user', 'created_at']

    def folder_count(self, obj: Workspace) -> int:
        return obj.folders.count()
    folder_count.short_description = 'Folders'  # type: ignore[attr-defined]

    def file_count(self, obj: Workspace) -> int:
        return obj.files.count()
    file_count.short_description = 'Files'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Workspace]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user')


@admin.register(Link)
class LinkAdmin(admin.ModelAdmin[Link]):
    """Admin interface for Link model."""

    list_display = ['slug', 'title', 'workspace', 'state_display', 'is_public']
    list_filter = ['is_active', 'is_public']
    search_fields = ['slug', 'title']
    readonly_fields = ['is_active', 'created_at', 'updated_at']

    def state_display(self, obj: Link) -> str:
        """Display Active / Unbound state.

        Args:
            obj: Link instance.

        Returns:
            HTML formatted state indicator.
        """
        if obj.is_active:
            color, state = '#28a745', 'Active'
        else:
            color, state = '#6c757d', 'Unbound'
        return format_html(
            '<span style="color: {color}; font-weight: bold;">{state}</span>',
            color=color,
            state=state,
        )
    state_display.short_description = 'State'  # type: ignore[attr-defined]


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin[Folder]):
    """Admin interface for Folder model.

    Tree edges are read-only here: moves and deletes must go through
    the workspace logic so cycles and orphaned blobs cannot appear.
    """

    list_display = ['name', 'workspace', 'parent', 'link']
    search_fields = ['name']
    readonly_fields = ['workspace', 'parent', 'link', 'created_at', 'updated_at']

    def has_delete_permission(
        self,
        request: HttpRequest,
        obj: Folder | None = None,
    ) -> bool:
        return False

    def get_queryset(self, request: HttpRequest) -> QuerySet[Folder]:
        return super().get_queryset(request).select_related(
            'workspace__user',
            'parent',
            'link',
        )


@admin.register(File)
class FileAdmin(admin.ModelAdmin[File]):
    """Admin interface for File model."""

    list_display = [
        'name',
        'workspace',
        'folder',
        'size_display',
        'mime_type',
        'uploaded_at',
    ]

    list_filter = [
        'mime_type',
        'uploaded_at',
    ]

    search_fields = [
        'name',
        'checksum_sha256',
        'uploader_email',
    ]

    readonly_fields = [
        'workspace',
        'folder',
        'storage_path',
        'size_bytes',
        'mime_type',
        'checksum_sha256',
        'uploaded_at',
        'modified_at',
    ]

    fieldsets = (
        ('File Information', {
            'fields': ('name', 'workspace', 'folder', 'storage_path'),
        }),
        ('Metadata', {
            'fields': (
                'size_bytes',
                'mime_type',
                'checksum_sha256',
            ),
        }),
        ('Uploader', {
            'fields': ('uploader_email', 'uploader_name'),
        }),
        ('Timestamps', {
            'fields': ('uploaded_at', 'modified_at'),
        }),
    )

    actions = ['delete_from_storage']

    def size_display(self, obj: File) -> str:
        return _format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def has_delete_permission(
        self,
        request: HttpRequest,
        obj: File | None = None,
    ) -> bool:
        # Stock deletes would drop records before their blobs
        return False

    @admin.action(description='Delete selected files (storage first)')
    def delete_from_storage(
        self,
        request: HttpRequest,
        queryset: QuerySet[File],
    ) -> None:
        """Delete files blob-first, one workspace at a time.

        Args:
            request: HTTP request.
            queryset: Selected files.
        """
        by_workspace: dict[Workspace, list[str]] = {}
        for file_instance in queryset.select_related('workspace'):
            by_workspace.setdefault(file_instance.workspace, []).append(
                str(file_instance.id),
            )
        for workspace, file_ids in by_workspace.items():
            result = bulk_delete(workspace, file_ids, [])
            level = messages.WARNING if result.failures else messages.SUCCESS
            self.message_user(request, result.summary('Deleted'), level)

    def get_queryset(self, request: HttpRequest) -> QuerySet[File]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related(
            'workspace__user',
            'folder',
        )
