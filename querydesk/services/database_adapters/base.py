"""
Database adapter base class
Interface every external database adapter implements
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional


class DatabaseAdapter(ABC):
    """Database adapter base class"""

    @abstractmethod
    def get_connection_string(self, config: Dict[str, Any]) -> str:
        """
        Build the SQLAlchemy connection string

        Args:
            config: connection settings with url, username and password

        Returns:
            connection string
        """
        pass

    @abstractmethod
    def get_driver_name(self) -> str:
        """
        SQLAlchemy driver name, e.g. 'mysql+pymysql', 'postgresql+psycopg2'
        """
        pass

    @abstractmethod
    def get_connect_args(self) -> Dict[str, Any]:
        """DBAPI connect() keyword arguments"""
        pass

    @abstractmethod
    def get_sqlglot_dialect(self) -> Optional[str]:
        """
        sqlglot dialect used to parse SQL written for this database

        Returns:
            dialect name, or None for the generic dialect
        """
        pass

    def get_db_type(self) -> str:
        """
        Database type name, e.g. 'mysql', 'postgresql', 'sqlite'
        """
        return self.__class__.__name__.replace('Adapter', '').lower()
