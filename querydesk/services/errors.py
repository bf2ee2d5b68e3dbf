"""
Service-layer exceptions
"""
from typing import Optional


class QueryDeskError(Exception):
    """Base class for all service errors"""


class SqlParseError(QueryDeskError):
    """SQL text could not be parsed; validation fails closed"""

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.sql = sql


class AccessDeniedError(QueryDeskError):
    """The user's allow-list does not cover a referenced table or column"""


class TableAccessDeniedError(AccessDeniedError):
    def __init__(self, table: str):
        super().__init__(f"User does not have permission to access table: {table}")
        self.table = table


class ColumnAccessDeniedError(AccessDeniedError):
    def __init__(self, table: str, column: str):
        super().__init__(
            f"User does not have permission to access field: {column} in table: {table}"
        )
        self.table = table
        self.column = column


class ConnectionNotFoundError(QueryDeskError):
    def __init__(self, db_config_id: str):
        super().__init__(f"Database connection not found: {db_config_id}")
        self.db_config_id = db_config_id


class ScheduleConfigurationError(QueryDeskError):
    """A schedule's recurrence settings are invalid"""


class TransientExecutionError(QueryDeskError):
    """Network or database failure while executing a query"""


class RenderError(QueryDeskError):
    """Rendering a result set failed; ``stage`` is 'pdf' or 'excel'"""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage.upper()} Generation Error: {message}")
        self.stage = stage


class EmailDispatchError(QueryDeskError):
    """The email sender rejected or failed to deliver a message"""
