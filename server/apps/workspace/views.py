"""HTTP views for workspace app."""

import logging
from uuid import UUID

from django.contrib.auth.decorators import login_required
from django.http import FileResponse, Http404, HttpRequest
from django.views.decorators.http import require_GET

from server.apps.workspace.exceptions import ItemNotFoundError
from server.apps.workspace.logic import tree
from server.apps.workspace.logic.archive import archive_filename, build_archive
from server.apps.workspace.models import Workspace

logger = logging.getLogger(__name__)


@require_GET
@login_required
def download_folder_archive(request: HttpRequest, folder_id: UUID) -> FileResponse:
    """Stream a zip of a folder's content as an attachment.

    The ``Content-Disposition`` header carries the folder's display
    name, RFC 6266 encoded when it is not plain ASCII.

    Args:
        request: HTTP request of the workspace owner.
        folder_id: Folder to package.

    Returns:
        FileResponse with ``application/zip`` content.

    Raises:
        Http404: If the folder is not in the requester's workspace.
    """
    try:
        workspace = Workspace.objects.get(user=request.user)
        folder = tree.get_folder(workspace, folder_id)
    except (Workspace.DoesNotExist, ItemNotFoundError):
        raise Http404('Folder not found') from None

    # ArchiveBuildError propagates: a failed build must not look like an empty zip
    archive = build_archive(workspace, folder.id)
    logger.info('Serving archive of folder %s to %s', folder.id, request.user)
    return FileResponse(
        archive,
        as_attachment=True,
        filename=archive_filename(folder),
        content_type='application/zip',
    )
