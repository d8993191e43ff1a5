# mentormatch/api/__init__.py
# This file makes the api directory a Python package.

from . import admin
from . import auth
from . import match
from . import notification
from . import users

__all__ = [
    "admin",
    "auth",
    "match",
    "notification",
    "users",
]
