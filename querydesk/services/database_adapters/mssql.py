"""
SQL Server adapter
"""
from typing import Dict, Any, Optional
from urllib.parse import quote_plus
from .base import DatabaseAdapter


class MSSQLAdapter(DatabaseAdapter):
    """SQL Server adapter (pyodbc)"""

    driver = "ODBC Driver 18 for SQL Server"

    def get_connection_string(self, config: Dict[str, Any]) -> str:
        """url is host:port/database"""
        username = config.get('username', '')
        password = config.get('password', '')
        url = config.get('url', '')
        query = f"driver={quote_plus(self.driver)}&TrustServerCertificate=yes"

        if username and password:
            return f"mssql+pyodbc://{quote_plus(username)}:{quote_plus(password)}@{url}?{query}"
        else:
            return f"mssql+pyodbc://{url}?{query}&Trusted_Connection=yes"

    def get_driver_name(self) -> str:
        return "mssql+pyodbc"

    def get_connect_args(self) -> Dict[str, Any]:
        return {"timeout": 30}

    def get_sqlglot_dialect(self) -> Optional[str]:
        return "tsql"

    def get_db_type(self) -> str:
        return "mssql"
