"""Django app configuration for workspace app."""

from typing_extensions import override

from django.apps import AppConfig


class WorkspaceConfig(AppConfig):
    """Configuration for workspace app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.workspace'
    verbose_name = 'Workspace'

    @override
    def ready(self) -> None:
        """Import signal handlers when app is ready."""
        from server.apps.workspace import signals  # noqa: F401
