"""Logging configuration.

Every module logs through ``logging.getLogger(__name__)``; this only
decides where records go and how verbose each namespace is.
"""

from typing import Any, Final

from server.settings.components import config

LOGGING: Final[dict[str, Any]] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'console': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': config('DJANGO_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'server': {
            'handlers': ['console'],
            'level': config('WORKSPACE_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}
