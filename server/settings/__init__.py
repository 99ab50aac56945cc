"""Django settings for the workspace organizer project.

Settings are assembled with ``django-split-settings`` from components
shared by every environment plus one environment-specific module chosen
by the ``DJANGO_ENV`` environment variable.
"""

from os import environ

import django_stubs_ext
from split_settings.tools import include, optional

# Runtime support for generic classes such as `admin.ModelAdmin[File]`
django_stubs_ext.monkeypatch()

# Managing environment via DJANGO_ENV variable:
environ.setdefault('DJANGO_ENV', 'development')
_ENV = environ['DJANGO_ENV']

_base_settings = (
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/workspace.py',
    # Select the right env:
    f'environments/{_ENV}.py',
    # Optionally override some settings:
    optional('environments/local.py'),
)

# Include settings:
include(*_base_settings)
