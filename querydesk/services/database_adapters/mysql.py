"""
MySQL adapter
"""
from typing import Dict, Any, Optional
from .base import DatabaseAdapter


class MySQLAdapter(DatabaseAdapter):
    """MySQL adapter"""

    def get_connection_string(self, config: Dict[str, Any]) -> str:
        """url is host:port/database"""
        username = config.get('username', '')
        password = config.get('password', '')
        url = config.get('url', '')

        if username and password:
            return f"mysql+pymysql://{username}:{password}@{url}"
        elif username:
            return f"mysql+pymysql://{username}@{url}"
        else:
            return f"mysql+pymysql://{url}"

    def get_driver_name(self) -> str:
        return "mysql+pymysql"

    def get_connect_args(self) -> Dict[str, Any]:
        return {"connect_timeout": 30}

    def get_sqlglot_dialect(self) -> Optional[str]:
        return "mysql"

    def get_db_type(self) -> str:
        return "mysql"
