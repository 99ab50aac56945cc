"""Folder-link binding lifecycle.

A link is Unbound (inactive, no folder) or Active (active, exactly one
folder). Binding and unbinding flip both sides in one transaction, and
unbinding never deletes the link so its URL can be handed out again.
"""

import logging
from collections.abc import Sequence

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from server.apps.workspace.exceptions import (
    ItemNotFoundError,
    SlugConflictError,
    TreeValidationError,
)
from server.apps.workspace.infrastructure.links import (
    LinkFactory,
    create_link,
    is_slug_available,
)
from server.apps.workspace.infrastructure.metadata import base_link_slug
from server.apps.workspace.logic import naming, tree
from server.apps.workspace.models import Folder, Link, Workspace

logger = logging.getLogger(__name__)


def get_link(workspace: Workspace, link_id: object, *, lock: bool = False) -> Link:
    """Fetch a link of the workspace.

    Raises:
        ItemNotFoundError: If the id is malformed, unknown or belongs to
            another workspace.
    """
    queryset = Link.objects.select_for_update() if lock else Link.objects
    try:
        return queryset.get(id=link_id, workspace=workspace)
    except (Link.DoesNotExist, ValidationError, ValueError):
        raise ItemNotFoundError('link', link_id) from None


def link_title(folder: Folder) -> str:
    return f'{folder.name} Link'


def bind_existing(workspace: Workspace, folder_id: object, link_id: object) -> Folder:
    """Bind an unbound link to a folder without a binding.

    Args:
        workspace: Owning workspace.
        folder_id: Folder to share.
        link_id: Link in the Unbound state.

    Returns:
        The folder, now referencing the activated link.

    Raises:
        ItemNotFoundError: If the folder or link is not in the workspace.
        TreeValidationError: If the folder already has a link or the
            link is already active.
    """
    with transaction.atomic():
        folder = tree.get_folder(workspace, folder_id, lock=True)
        if folder.link_id is not None:
            raise TreeValidationError('folder is already bound to a link')
        link = get_link(workspace, link_id, lock=True)
        if link.is_active or Folder.objects.filter(link=link).exists():
            raise TreeValidationError('link is already bound to a folder')

        link.is_active = True
        link.save(update_fields=['is_active', 'updated_at'])
        folder.link = link
        folder.save(update_fields=['link', 'updated_at'])

    logger.info('Folder %s bound to link %s', folder.id, link.slug)
    return folder


def _create_with_available_slug(
    workspace: Workspace,
    folder: Folder,
    allowed_emails: Sequence[str],
    link_factory: LinkFactory,
) -> Link:
    base_slug = base_link_slug(folder.name)
    attempts = settings.WORKSPACE_LINK_SLUG_ATTEMPTS
    for slug in naming.slug_candidates(base_slug, attempts):
        if not is_slug_available(slug):
            continue
        try:
            with transaction.atomic():
                return link_factory(
                    workspace,
                    link_title(folder),
                    slug,
                    is_public=not allowed_emails,
                    allowed_emails=allowed_emails,
                )
        except IntegrityError:
            # Taken between the lookup and the insert
            logger.warning('Slug %s taken concurrently, probing next', slug)
    logger.warning(
        'No free slug for folder %s after %d attempts',
        folder.id,
        attempts,
    )
    raise SlugConflictError(base_slug, attempts)


def bind_new(
    workspace: Workspace,
    folder_id: object,
    allowed_emails: Sequence[str] = (),
    *,
    link_factory: LinkFactory = create_link,
) -> Link:
    """Create a link named after a folder and bind it.

    Example: folder 'Client Docs' -> link 'Client Docs Link' with slug
    'client-docs-link' (or 'client-docs-link-2', ... when taken).

    Args:
        workspace: Owning workspace.
        folder_id: Folder to share.
        allowed_emails: Recipients; an empty list makes the link public.
        link_factory: Collaborator creating the unbound link.

    Returns:
        The new, active link.

    Raises:
        ItemNotFoundError: If the folder is not in the workspace.
        TreeValidationError: If the folder already has a link.
        SlugConflictError: If every slug candidate is taken.
    """
    folder = tree.get_folder(workspace, folder_id)
    if folder.link_id is not None:
        raise TreeValidationError('folder is already bound to a link')

    with transaction.atomic():
        link = _create_with_available_slug(
            workspace,
            folder,
            allowed_emails,
            link_factory,
        )
        bind_existing(workspace, folder.id, link.id)

    link.refresh_from_db()
    return link


def unbind(workspace: Workspace, folder_id: object) -> Link | None:
    """Detach a folder from its link and deactivate the link.

    Unbinding a folder without a link succeeds without changes.

    Args:
        workspace: Owning workspace.
        folder_id: Folder to stop sharing.

    Returns:
        The deactivated link (kept for reuse), or None if the folder had
        no binding.

    Raises:
        ItemNotFoundError: If the folder is not in the workspace.
    """
    with transaction.atomic():
        folder = tree.get_folder(workspace, folder_id, lock=True)
        if folder.link_id is None:
            logger.debug('Folder %s has no link, nothing to unbind', folder.id)
            return None
        link = Link.objects.select_for_update().get(id=folder.link_id)
        folder.link = None
        folder.save(update_fields=['link', 'updated_at'])
        link.is_active = False
        link.save(update_fields=['is_active', 'updated_at'])

    logger.info('Folder %s unbound from link %s', folder.id, link.slug)
    return link
