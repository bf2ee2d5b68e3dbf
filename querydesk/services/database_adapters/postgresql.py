"""
PostgreSQL adapter
"""
from typing import Dict, Any, Optional
from .base import DatabaseAdapter


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL adapter"""

    def get_connection_string(self, config: Dict[str, Any]) -> str:
        """url is host:port/database"""
        username = config.get('username', '')
        password = config.get('password', '')
        url = config.get('url', '')

        if username and password:
            return f"postgresql+psycopg2://{username}:{password}@{url}"
        elif username:
            return f"postgresql+psycopg2://{username}@{url}"
        else:
            return f"postgresql+psycopg2://{url}"

    def get_driver_name(self) -> str:
        return "postgresql+psycopg2"

    def get_connect_args(self) -> Dict[str, Any]:
        return {"connect_timeout": 30}

    def get_sqlglot_dialect(self) -> Optional[str]:
        return "postgres"

    def get_db_type(self) -> str:
        return "postgresql"
