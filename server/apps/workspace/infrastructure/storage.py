"""Custom storage backend for S3-compatible storage."""

import enum
import logging
from typing import Any, final

from typing_extensions import override

from storages.backends.s3 import S3Storage

from server.apps.workspace.exceptions import StorageOperationError

logger = logging.getLogger(__name__)


class BlobRemoval(enum.Enum):
    """Outcome of a blob removal that did not fail."""

    DELETED = 'deleted'
    NOT_FOUND = 'not_found'


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for workspace blobs.

    Extends django-storages S3Storage with:
    - Storage-first delete semantics (deleted / not found / error)
    - Transaction rollback support for failed DB operations
    - Server-side copies for cross-tree drops
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage path of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except Exception:
            logger.exception('Failed to delete file from storage: %s', name)
            raise

    def remove_blob(self, name: str) -> BlobRemoval:
        """Remove a blob, telling apart absence from failure.

        S3 deletes are idempotent, so existence is checked first to report
        an already-missing blob as NOT_FOUND.

        Args:
            name: Storage path of blob to remove.

        Returns:
            DELETED if the blob was removed, NOT_FOUND if it was absent.

        Raises:
            StorageOperationError: If probing or deleting fails.
        """
        try:
            if not self.exists(name):
                logger.warning(
                    'Blob not found in storage (already deleted?): %s',
                    name,
                )
                return BlobRemoval.NOT_FOUND
            self.delete(name)
        except Exception as exc:
            raise StorageOperationError(
                name,
                f'blob delete failed: {exc}',
            ) from exc
        return BlobRemoval.DELETED

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded file for DB transaction rollback.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised, as the DB rollback has already occurred.

        Args:
            name: Storage path of file to delete.
        """
        try:
            logger.warning('Rolling back upload, deleting file: %s', name)
            self.delete(name)
            logger.info('Successfully rolled back file upload: %s', name)
        except Exception:
            # Orphaned until a bucket lifecycle rule collects it
            logger.exception(
                'Failed to rollback upload, orphaned file: %s',
                name,
            )

    def copy_object(self, source: str, destination: str) -> None:
        """Copy an object server-side inside the bucket.

        Args:
            source: Source storage path.
            destination: Destination storage path.

        Raises:
            StorageOperationError: If the copy fails.
        """
        try:
            logger.info('Copying file: %s -> %s', source, destination)
            copy_source = {
                'Bucket': self.bucket_name,
                'Key': source,
            }
            self.bucket.copy(copy_source, destination)
        except Exception as exc:
            logger.exception('Copy failed: %s -> %s', source, destination)
            raise StorageOperationError(
                destination,
                f'blob copy failed: {exc}',
            ) from exc

    def download_url(self, name: str, expire: int) -> str:
        """Get a time-limited presigned download URL.

        Args:
            name: Storage path of the blob.
            expire: URL lifetime in seconds.

        Returns:
            Presigned URL.
        """
        return self.url(name, expire=expire)
