"""
Database adapters
One adapter per supported external database type
"""
from .base import DatabaseAdapter
from .factory import DatabaseAdapterFactory
from .mssql import MSSQLAdapter
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter

__all__ = [
    'DatabaseAdapter',
    'DatabaseAdapterFactory',
    'MSSQLAdapter',
    'MySQLAdapter',
    'PostgreSQLAdapter',
    'SQLiteAdapter',
]
