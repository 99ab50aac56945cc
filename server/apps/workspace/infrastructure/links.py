"""Link-creation collaborator.

Shareable links are owned by a separate feature (branding, passwords,
upload limits). The workspace engine only needs to create a link row
and later toggle its activation, so this module is the single seam
through which it does so.
"""

import logging
from collections.abc import Sequence
from typing import Protocol

from django.db import transaction

from server.apps.workspace.models import Link, Workspace

logger = logging.getLogger(__name__)


class LinkFactory(Protocol):
    """Callable that creates a new, still unbound link."""

    def __call__(
        self,
        workspace: Workspace,
        title: str,
        slug: str,
        *,
        is_public: bool,
        allowed_emails: Sequence[str],
    ) -> Link:
        """Create the link."""


def is_slug_available(slug: str) -> bool:
    """Check whether no link uses the slug yet.

    Args:
        slug: Candidate slug.

    Returns:
        True if the slug is free.
    """
    return not Link.objects.filter(slug=slug).exists()


def create_link(
    workspace: Workspace,
    title: str,
    slug: str,
    *,
    is_public: bool,
    allowed_emails: Sequence[str],
) -> Link:
    """Create a standalone link in the Unbound state.

    Args:
        workspace: Owning workspace.
        title: Display title.
        slug: Unique public URL component.
        is_public: Whether anyone with the URL may access it.
        allowed_emails: Recipients allowed when the link is not public.

    Returns:
        Created Link instance.
    """
    recipients = sorted({
        email.strip().lower() for email in allowed_emails if email.strip()
    })
    with transaction.atomic():
        link = Link.objects.create(
            workspace=workspace,
            title=title,
            slug=slug,
            is_public=is_public,
            is_active=False,
            allowed_emails=recipients,
        )
    logger.info(
        'Link created: %s (ID: %s, recipients: %d)',
        slug,
        link.id,
        len(recipients),
    )
    return link
