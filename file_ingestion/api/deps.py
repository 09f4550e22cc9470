from fastapi import Depends

from file_ingestion.db import get_db
from file_ingestion.services.auth_dependencies import require_editor, require_user_auth


def get_current_user(auth=Depends(require_user_auth)):
    """Get current authenticated user info.

    Returns a dict with subject, username, roles, and the primary role.
    """
    return auth


__all__ = [
    "get_db",
    "get_current_user",
    "require_editor",
    "require_user_auth",
]
