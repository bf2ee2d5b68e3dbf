"""
HTTP middleware
"""
from .user_context import UserContextMiddleware, get_current_user_id, require_admin

__all__ = ["UserContextMiddleware", "get_current_user_id", "require_admin"]
