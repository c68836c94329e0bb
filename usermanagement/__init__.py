"""Core package for the user management service."""

from __future__ import annotations

from typing import Any

from .models import User, UserInput
from .store import UserStore
from .users import UserService


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "User",
    "UserInput",
    "UserService",
    "UserStore",
    "create_app",
]
