"""Workspace engine limits."""

from server.settings.components import config

# Deepest allowed folder; a top-level folder has depth 1
WORKSPACE_MAX_FOLDER_DEPTH = config(
    'WORKSPACE_MAX_FOLDER_DEPTH',
    cast=int,
    default=10,
)

# Files + folders accepted by a single bulk move/delete/copy request
WORKSPACE_MAX_BULK_ITEMS = config(
    'WORKSPACE_MAX_BULK_ITEMS',
    cast=int,
    default=500,
)

# Slug candidates tried when a folder gets a new link (base, -2 ... -N)
WORKSPACE_LINK_SLUG_ATTEMPTS = config(
    'WORKSPACE_LINK_SLUG_ATTEMPTS',
    cast=int,
    default=10,
)

# Lifetime of presigned download URLs, in seconds
WORKSPACE_DOWNLOAD_URL_EXPIRY = config(
    'WORKSPACE_DOWNLOAD_URL_EXPIRY',
    cast=int,
    default=3600,
)

# Archives bigger than this spill from memory to a temporary file
WORKSPACE_ARCHIVE_SPOOL_BYTES = config(
    'WORKSPACE_ARCHIVE_SPOOL_BYTES',
    cast=int,
    default=32 * 1024 * 1024,
)
