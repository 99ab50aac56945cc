"""Overriding settings for local development and tests."""

from typing import Final

DEBUG = True

ALLOWED_HOSTS: Final = [
    'localhost',
    '0.0.0.0',  # noqa: S104
    '127.0.0.1',
    'testserver',
]
