"""Django storage configuration for S3-compatible backends.

This module configures django-storages to work with:
- MinIO for local development
- Cloudflare R2 or AWS S3 for production

All of them are S3-compatible and use the same S3Storage backend.
Workspace blobs are private: downloads go through presigned URLs.
"""

from typing import Any, Final

from server.settings.components import config

# Uses S3-compatible storage for workspace blobs, local storage for static
STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.workspace.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='workspace-files',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default='testing'),
            'secret_key': config('AWS_SECRET_ACCESS_KEY', default='testing'),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
            'querystring_auth': True,  # Presigned download URLs
        },
    },
    'staticfiles': {
        # Keep static files separate from workspace blobs
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
