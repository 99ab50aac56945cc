"""Management command to audit workspace tree integrity."""

import logging
import uuid
from typing import Any

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Count, QuerySet
from django.db.models.functions import Lower

from server.apps.workspace.exceptions import TreeIntegrityError
from server.apps.workspace.logic.tree import get_ancestor_ids
from server.apps.workspace.models import File, Folder, Link

logger = logging.getLogger(__name__)


def _duplicate_names(queryset: QuerySet, parent_field: str) -> list[dict[str, Any]]:
    return list(
        queryset.annotate(lower_name=Lower('name'))
        .values('workspace_id', parent_field, 'lower_name')
        .annotate(copies=Count('id'))
        .filter(copies__gt=1)
        .order_by('workspace_id', 'lower_name'),
    )


class Command(BaseCommand):
    """Report cycles, over-deep chains, duplicate names and link mismatches."""

    help = 'Audit folder trees, sibling names and folder-link activation'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--workspace',
            help='Only audit the workspace with this id',
        )
        parser.add_argument(
            '--fix-links',
            action='store_true',
            help='Make Link.is_active match whether a folder is bound',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the audit.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the workspace id is malformed or problems
                remain after the audit.
        """
        folders = Folder.objects.all()
        files = File.objects.all()
        links = Link.objects.all()
        if options['workspace']:
            try:
                workspace_id = uuid.UUID(options['workspace'])
            except ValueError:
                raise CommandError(
                    f'Invalid workspace id: {options["workspace"]}',
                ) from None
            folders = folders.filter(workspace_id=workspace_id)
            files = files.filter(workspace_id=workspace_id)
            links = links.filter(workspace_id=workspace_id)

        problems = self._check_chains(folders)
        problems += self._check_names(folders, files)
        problems += self._check_links(links, fix=options['fix_links'])

        if problems:
            raise CommandError(f'{problems} problems found')
        self.stdout.write(self.style.SUCCESS('No problems found'))

    def _check_chains(self, folders: QuerySet[Folder]) -> int:
        problems = 0
        for folder_id in folders.values_list('id', flat=True).iterator():
            try:
                get_ancestor_ids(folder_id)
            except TreeIntegrityError as exc:
                self.stderr.write(f'Folder {folder_id}: {exc.reason}')
                logger.warning('Tree integrity problem: %s', exc.reason)
                problems += 1
        return problems

    def _check_names(self, folders: QuerySet[Folder], files: QuerySet[File]) -> int:
        problems = 0
        checks = (('folder', 'parent_id', folders), ('file', 'folder_id', files))
        for kind, parent_field, queryset in checks:
            for row in _duplicate_names(queryset, parent_field):
                self.stderr.write(
                    f'Duplicate {kind} name {row["lower_name"]!r} x{row["copies"]} '
                    f'(workspace {row["workspace_id"]}, '
                    f'parent {row[parent_field] or "root"})',
                )
                problems += 1
        return problems

    def _check_links(self, links: QuerySet[Link], *, fix: bool) -> int:
        active_unbound = links.filter(is_active=True, folder__isnull=True)
        inactive_bound = links.filter(is_active=False, folder__isnull=False)
        mismatches = list(active_unbound) + list(inactive_bound)
        for link in mismatches:
            state = 'active' if link.is_active else 'inactive'
            self.stderr.write(f'Link {link.slug}: {state} but binding disagrees')
        if not fix or not mismatches:
            return len(mismatches)

        deactivated = active_unbound.update(is_active=False)
        activated = inactive_bound.update(is_active=True)
        logger.info(
            'Reconciled links: %d deactivated, %d activated',
            deactivated,
            activated,
        )
        self.stdout.write(
            self.style.SUCCESS(
                f'Fixed links: {deactivated} deactivated, {activated} activated',
            ),
        )
        return 0
