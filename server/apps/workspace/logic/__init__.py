"""Business logic layer for workspace app.

This package contains the organization engine of a workspace:
- Unique naming of folders, files and link slugs
- Tree validation (cycles, depth) and recursive descendant queries
- Single-item and bulk move / delete with partial-failure reporting
- Folder archives, selection / drag state and folder-link binding

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).

Reference: https://github.com/dry-python
for decoupling business logic from Django views.
"""
