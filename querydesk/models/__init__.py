"""
ORM models
"""
from .base import Base
from .database_config import DatabaseConfig
from .permission_grant import PermissionGrant
from .scheduled_report import ScheduledReport

__all__ = [
    "Base",
    "DatabaseConfig",
    "PermissionGrant",
    "ScheduledReport",
]
