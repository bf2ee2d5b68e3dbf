"""
SQLite adapter
"""
from typing import Dict, Any, Optional
from .base import DatabaseAdapter


class SQLiteAdapter(DatabaseAdapter):
    """SQLite adapter"""

    def get_connection_string(self, config: Dict[str, Any]) -> str:
        """SQLite URLs are used as given, e.g. sqlite:///path/to/file.db"""
        url = config.get('url', '')
        if not url.startswith('sqlite'):
            url = f"sqlite:///{url}"
        return url

    def get_driver_name(self) -> str:
        return "sqlite"

    def get_connect_args(self) -> Dict[str, Any]:
        # connections are used from worker threads
        return {"check_same_thread": False}

    def get_sqlglot_dialect(self) -> Optional[str]:
        return "sqlite"

    def get_db_type(self) -> str:
        return "sqlite"
