"""
External database connection model
"""
from sqlalchemy import Column, String, Text, Boolean
from .base import Base, TimestampMixin


class DatabaseConfig(Base, TimestampMixin):
    """Registered external databases that queries and reports run against"""
    __tablename__ = "database_configs"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    type = Column(String(50), nullable=False)  # sqlite, mysql, postgresql, mssql
    url = Column(Text, nullable=False)
    username = Column(String(255), nullable=True)
    encrypted_password = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<DatabaseConfig(id={self.id}, name={self.name}, type={self.type})>"
