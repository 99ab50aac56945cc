"""Metadata and naming utilities for workspace items."""

import hashlib
import mimetypes
from typing import Any, BinaryIO, Final
from urllib.parse import quote

from django.utils.text import slugify

from server.apps.workspace.exceptions import TreeValidationError

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation
_NAME_MAX_LENGTH: Final = 255
_FORBIDDEN_NAME_CHARS: Final = frozenset(('/', '\\', '\x00'))
_ROOT_SEGMENT: Final = 'root'
_FALLBACK_SLUG: Final = 'folder'
_SLUG_BASE_MAX_LENGTH: Final = 80  # Leaves room for '-link-NN'


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from a display name.

    Uses Python's built-in mimetypes module to guess MIME type
    from filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    file_obj.seek(0)
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def get_file_size(file_obj: Any) -> int:
    """Get file size from file object.

    Args:
        file_obj: File-like object, optionally exposing ``size``.

    Returns:
        File size in bytes.
    """
    if hasattr(file_obj, 'size'):
        return file_obj.size
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def split_name(name: str) -> tuple[str, str]:
    """Split a display name into stem and extension.

    A leading dot does not start an extension ('.env' has none) and
    neither does a trailing one ('notes.' has none).

    Example: 'archive.tar.gz' -> ('archive.tar', '.gz')

    Args:
        name: Display name.

    Returns:
        Tuple of stem and extension (extension includes the dot or is '').
    """
    dot_index = name.rfind('.')
    if dot_index <= 0 or dot_index == len(name) - 1:
        return name, ''
    return name[:dot_index], name[dot_index:]


def validate_item_name(name: str) -> str:
    """Validate and normalize a folder or file display name.

    Args:
        name: Proposed display name.

    Returns:
        Name with surrounding whitespace stripped.

    Raises:
        TreeValidationError: If name is empty, too long, a dot segment,
            or contains a path separator or NUL byte.
    """
    normalized = name.strip()
    if not normalized:
        raise TreeValidationError('name cannot be empty')
    if len(normalized) > _NAME_MAX_LENGTH:
        raise TreeValidationError(
            f'name longer than {_NAME_MAX_LENGTH} characters',
        )
    if normalized in {'.', '..'}:
        raise TreeValidationError('name cannot be a dot segment')
    if _FORBIDDEN_NAME_CHARS.intersection(normalized):
        raise TreeValidationError('name cannot contain path separators')
    return normalized


def build_storage_path(
    workspace_id: object,
    folder_id: object | None,
    name: str,
) -> str:
    """Build the blob key for a display name.

    The display name is percent-encoded so any character round-trips
    through S3 keys; the original name lives on the File record.

    Example: (ws, None, 'Résumé 1.pdf') -> 'ws/root/R%C3%A9sum%C3%A9%201.pdf'

    Args:
        workspace_id: Owning workspace id.
        folder_id: Containing folder id, None for root level.
        name: Display name.

    Returns:
        Storage path.
    """
    folder_segment = str(folder_id) if folder_id is not None else _ROOT_SEGMENT
    encoded_name = quote(name, safe='')
    return f'{workspace_id}/{folder_segment}/{encoded_name}'


def base_link_slug(folder_name: str) -> str:
    """Derive the link slug base from a folder name.

    Example: 'Client Documents' -> 'client-documents-link'

    Args:
        folder_name: Folder display name.

    Returns:
        Slug ending in '-link'.
    """
    slug = slugify(folder_name)[:_SLUG_BASE_MAX_LENGTH].strip('-')
    if not slug:
        slug = _FALLBACK_SLUG
    return f'{slug}-link'
