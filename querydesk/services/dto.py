"""
Data Transfer Objects
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any, Set


class DataMetadata(BaseModel):
    """Column names, inferred types and row count of a result set"""
    columns: List[str]
    column_types: Dict[str, str]
    row_count: int


class PermissionGrant(BaseModel):
    """
    A user's allow-list on one connection

    Table and column names compare case-insensitively. A column is only
    reachable when its table is allowed as well.
    """
    id: Optional[int] = None
    user_id: str
    db_config_id: str
    allowed_tables: Set[str] = Field(default_factory=set)
    allowed_columns: Dict[str, Set[str]] = Field(default_factory=dict)

    def allows_table(self, table: str) -> bool:
        wanted = table.casefold()
        return any(t.casefold() == wanted for t in self.allowed_tables)

    def columns_for(self, table: str) -> Set[str]:
        wanted = table.casefold()
        allowed: Set[str] = set()
        for name, columns in self.allowed_columns.items():
            if name.casefold() == wanted:
                allowed.update(c.casefold() for c in columns)
        return allowed

    def allows_column(self, table: str, column: str) -> bool:
        if not self.allows_table(table):
            return False
        return column.casefold() in self.columns_for(table)


class ScheduleRequest(BaseModel):
    """A request to deliver a query's results on a recurrence"""
    db_config_id: str
    sql_query: str
    format: str = "pdf"  # 'pdf' or 'excel'
    email: str
    scheduled_time: datetime  # naive values are wall-clock time in `timezone`
    frequency: str = "once"
    timezone: str = "UTC"
    end_date: Optional[datetime] = None
    days_of_week: List[int] = Field(default_factory=list)  # Sunday = 0
    day_of_month: Optional[int] = None


class QueryExecutionResult(BaseModel):
    """Rows returned to the caller of a validated query"""
    columns: List[str]
    data: List[Dict[str, Any]]
    row_count: int
