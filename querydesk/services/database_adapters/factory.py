"""
Database adapter factory
"""
from typing import Dict, List, Type
from .base import DatabaseAdapter
from .mssql import MSSQLAdapter
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter


class DatabaseAdapterFactory:
    """Maps a connection's type to its adapter"""

    _adapters: Dict[str, Type[DatabaseAdapter]] = {
        "mssql": MSSQLAdapter,
        "sqlserver": MSSQLAdapter,
        "mysql": MySQLAdapter,
        "postgresql": PostgreSQLAdapter,
        "sqlite": SQLiteAdapter,
    }

    @classmethod
    def get_adapter(cls, db_type: str) -> DatabaseAdapter:
        """
        Get the adapter for a database type

        Args:
            db_type: 'mssql', 'mysql', 'postgresql' or 'sqlite'

        Returns:
            adapter instance

        Raises:
            ValueError: unsupported database type
        """
        adapter_class = cls._adapters.get((db_type or "").lower())

        if not adapter_class:
            raise ValueError(
                f"Unsupported database type: {db_type}. "
                f"Supported types: {', '.join(cls._adapters.keys())}"
            )

        return adapter_class()

    @classmethod
    def register_adapter(cls, db_type: str, adapter_class: Type[DatabaseAdapter]):
        cls._adapters[db_type.lower()] = adapter_class

    @classmethod
    def get_supported_types(cls) -> List[str]:
        return list(cls._adapters.keys())

    @classmethod
    def is_supported(cls, db_type: str) -> bool:
        return (db_type or "").lower() in cls._adapters
