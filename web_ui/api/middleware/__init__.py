"""
Realty Desk API Middleware

Account dependencies for the FastAPI application.
"""

from .auth import (
    ERROR_STATUS,
    get_account_context,
    require_authenticated,
    raise_for_result,
)

__all__ = [
    "ERROR_STATUS",
    "get_account_context",
    "require_authenticated",
    "raise_for_result",
]
