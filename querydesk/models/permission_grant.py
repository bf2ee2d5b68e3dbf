"""
Per-user allow-list model
"""
import json
from typing import Dict, List

from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint
from .base import Base, TimestampMixin


class PermissionGrant(Base, TimestampMixin):
    """Tables and columns a user may reference on one connection"""
    __tablename__ = "permission_grants"
    __table_args__ = (
        UniqueConstraint("user_id", "db_config_id", name="uq_permission_grant_user_db"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    db_config_id = Column(String(36), ForeignKey("database_configs.id"), nullable=False, index=True)
    allowed_tables = Column(Text, nullable=False, default="[]")  # JSON array
    allowed_columns = Column(Text, nullable=False, default="{}")  # JSON object: table -> [columns]
    created_by = Column(String(255), nullable=True)
    last_modified_by = Column(String(255), nullable=True)

    def get_allowed_tables(self) -> List[str]:
        return json.loads(self.allowed_tables) if self.allowed_tables else []

    def set_allowed_tables(self, tables) -> None:
        self.allowed_tables = json.dumps(sorted(tables))

    def get_allowed_columns(self) -> Dict[str, List[str]]:
        return json.loads(self.allowed_columns) if self.allowed_columns else {}

    def set_allowed_columns(self, columns: Dict[str, object]) -> None:
        self.allowed_columns = json.dumps(
            {table: sorted(cols) for table, cols in columns.items()},
            sort_keys=True
        )

    def __repr__(self):
        return f"<PermissionGrant(id={self.id}, user_id={self.user_id}, db_config_id={self.db_config_id})>"
