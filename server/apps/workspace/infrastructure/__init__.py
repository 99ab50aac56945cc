"""Infrastructure layer for workspace app.

This package contains integrations with external systems:
- Custom storage backend (S3/MinIO/R2) used as the blob boundary
- Link creation, the collaborator that issues shareable links
- Metadata extraction (MIME type, checksum) and naming helpers

Keep infrastructure concerns separate from business logic.
"""
