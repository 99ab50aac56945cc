"""Signal handlers for workspace app."""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from server.apps.workspace.models import Workspace

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def provision_workspace(
    sender: type,
    instance: object,
    created: bool,
    **kwargs: object,
) -> None:
    """Create the personal workspace when a user account is created.

    Args:
        sender: The user model class.
        instance: The user instance that was saved.
        created: True if the user row was just inserted.
        **kwargs: Additional signal arguments.
    """
    if not created or kwargs.get('raw'):
        return

    workspace, was_created = Workspace.objects.get_or_create(user=instance)
    if was_created:
        logger.info(
            'Workspace provisioned for user %s: %s',
            instance,
            workspace.id,
        )
