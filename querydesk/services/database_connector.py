"""
Database connector
Connection registry, live-schema introspection and query execution for the
registered external databases
"""
import asyncio
import threading
from typing import Dict, List, Any, Optional
from sqlalchemy import create_engine, text, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..database import Database, get_database
from ..models.database_config import DatabaseConfig
from .encryption_service import EncryptionService, get_encryption_service
from .errors import ConnectionNotFoundError, TransientExecutionError
from .dto import DataMetadata
from .database_adapters import DatabaseAdapterFactory
from ..utils.logger import get_logger, log_database_connection_error

logger = get_logger(__name__)


class ConnectionTestResult:
    """Outcome of a connection test"""
    def __init__(self, success: bool, message: str, error: Optional[str] = None):
        self.success = success
        self.message = message
        self.error = error


class QueryResult:
    """Materialised result set: rows keyed by column name"""
    def __init__(self, data: List[Dict[str, Any]], columns: List[str]):
        self.data = data
        self.columns = columns


class DatabaseConnector:
    """Opens connections to registered databases on demand"""

    def __init__(
        self,
        database: Optional[Database] = None,
        encryption_service: Optional[EncryptionService] = None
    ):
        """
        Args:
            database: config database holding the connection registry
            encryption_service: decrypts stored passwords
        """
        self.config_db = database or get_database()
        self.encryption_service = encryption_service or get_encryption_service()
        self.engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    def get_config(self, db_config_id: str) -> DatabaseConfig:
        """
        Look up a registered connection

        Raises:
            ConnectionNotFoundError: no such connection, or it is deactivated
        """
        with self.config_db.get_session() as session:
            db_config = session.query(DatabaseConfig).filter_by(id=db_config_id).first()
            if not db_config or not db_config.is_active:
                raise ConnectionNotFoundError(db_config_id)
            return db_config

    def get_dialect(self, db_config_id: str) -> Optional[str]:
        """sqlglot dialect for the connection's database type"""
        db_config = self.get_config(db_config_id)
        return DatabaseAdapterFactory.get_adapter(db_config.type).get_sqlglot_dialect()

    def _get_connection_string(self, db_config: DatabaseConfig) -> str:
        password = ""
        if db_config.encrypted_password:
            password = self.encryption_service.decrypt(db_config.encrypted_password)

        adapter = DatabaseAdapterFactory.get_adapter(db_config.type)
        return adapter.get_connection_string({
            'url': db_config.url,
            'username': db_config.username,
            'password': password
        })

    def _create_engine(self, db_config: DatabaseConfig) -> Engine:
        adapter = DatabaseAdapterFactory.get_adapter(db_config.type)
        pool_config = {"pool_pre_ping": True}
        if adapter.get_db_type() != "sqlite":
            pool_config.update(pool_size=5, max_overflow=10, pool_timeout=30)
        return create_engine(
            self._get_connection_string(db_config),
            connect_args=adapter.get_connect_args(),
            **pool_config
        )

    def _get_engine(self, db_config_id: str) -> Engine:
        with self._lock:
            if db_config_id in self.engines:
                return self.engines[db_config_id]

            db_config = self.get_config(db_config_id)
            engine = self._create_engine(db_config)
            self.engines[db_config_id] = engine
            logger.info(f"Created engine for connection: {db_config.name} ({db_config.type})")
            return engine

    # ============ Live schema ============

    def _live_table_names(self, engine: Engine) -> List[str]:
        inspector = inspect(engine)
        return inspector.get_table_names() + inspector.get_view_names()

    def _resolve_table_name(self, db_config_id: str, table: str) -> Optional[str]:
        engine = self._get_engine(db_config_id)
        wanted = table.casefold()
        for name in self._live_table_names(engine):
            if name.casefold() == wanted:
                return name
        return None

    def _table_columns(self, db_config_id: str, table: str) -> List[str]:
        name = self._resolve_table_name(db_config_id, table)
        if name is None:
            return []
        engine = self._get_engine(db_config_id)
        return [column["name"] for column in inspect(engine).get_columns(name)]

    async def table_exists(self, db_config_id: str, table: str) -> bool:
        """Whether the table or view exists live (case-insensitive)"""
        name = await asyncio.to_thread(self._resolve_table_name, db_config_id, table)
        return name is not None

    async def get_table_columns(self, db_config_id: str, table: str) -> List[str]:
        """Live column names of a table or view; empty if it does not exist"""
        return await asyncio.to_thread(self._table_columns, db_config_id, table)

    # ============ Execution ============

    def _execute_sync(self, db_config_id: str, sql: str) -> QueryResult:
        engine = self._get_engine(db_config_id)
        with engine.connect() as connection:
            result = connection.execute(text(sql))

            if not result.returns_rows:
                connection.commit()
                return QueryResult(data=[], columns=[])

            columns = list(result.keys())
            data = [dict(zip(columns, row)) for row in result.fetchall()]
            return QueryResult(data=data, columns=columns)

    async def execute_query(
        self,
        db_config_id: str,
        sql: str,
        timeout: Optional[float] = None
    ) -> QueryResult:
        """
        Execute SQL and materialise the full result set

        Args:
            db_config_id: connection id
            sql: SQL text, executed as given
            timeout: seconds to wait for the result; None waits indefinitely

        Returns:
            QueryResult with rows and column names

        Raises:
            ConnectionNotFoundError: the connection is not registered
            TransientExecutionError: the database failed or the timeout elapsed
        """
        db_config = self.get_config(db_config_id)
        logger.debug(
            f"Executing SQL on {db_config.name} ({db_config.type}): "
            f"{sql[:200]}{'...' if len(sql) > 200 else ''}"
        )

        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._execute_sync, db_config_id, sql),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise TransientExecutionError(
                f"Query timed out after {timeout} seconds"
            ) from e
        except SQLAlchemyError as e:
            raise TransientExecutionError(f"Database error: {e}") from e

        logger.info(
            f"SQL query succeeded: db_config_id={db_config_id}, "
            f"rows={len(result.data)}, columns={len(result.columns)}"
        )
        return result

    async def test_connection(self, db_config: DatabaseConfig) -> ConnectionTestResult:
        """
        Open a throwaway connection and run SELECT 1

        Args:
            db_config: connection settings, saved or not
        """
        engine = None
        try:
            adapter = DatabaseAdapterFactory.get_adapter(db_config.type)
            engine = create_engine(
                self._get_connection_string(db_config),
                connect_args=adapter.get_connect_args()
            )

            def ping():
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))

            await asyncio.to_thread(ping)

            logger.info(f"Connection test succeeded: {db_config.name}")
            return ConnectionTestResult(
                success=True,
                message=f"Connected: {db_config.name}"
            )

        except Exception as e:
            log_database_connection_error(
                logger,
                {"name": db_config.name, "type": db_config.type, "url": db_config.url},
                e
            )
            return ConnectionTestResult(
                success=False,
                message="Connection failed",
                error=str(e)
            )
        finally:
            if engine is not None:
                engine.dispose()

    def close_connection(self, db_config_id: str):
        """Dispose the engine of one connection, e.g. after its settings change"""
        with self._lock:
            engine = self.engines.pop(db_config_id, None)
        if engine is not None:
            engine.dispose()
            logger.info(f"Closed engine for connection: {db_config_id}")

    def close_all_connections(self):
        for db_config_id in list(self.engines.keys()):
            self.close_connection(db_config_id)

    def get_data_metadata(self, query_result: QueryResult) -> DataMetadata:
        """
        Column names, inferred types and row count of a result

        Types are inferred from the first non-null value in each column.
        """
        columns = query_result.columns
        row_count = len(query_result.data)

        column_types = {}
        for col in columns:
            value = next(
                (row.get(col) for row in query_result.data if row.get(col) is not None),
                None
            )
            if row_count == 0:
                column_types[col] = "UNKNOWN"
            elif value is None:
                column_types[col] = "NULL"
            elif isinstance(value, bool):
                column_types[col] = "BOOLEAN"
            elif isinstance(value, int):
                column_types[col] = "INTEGER"
            elif isinstance(value, float):
                column_types[col] = "FLOAT"
            elif isinstance(value, str):
                column_types[col] = "TEXT"
            else:
                column_types[col] = type(value).__name__

        return DataMetadata(
            columns=columns,
            column_types=column_types,
            row_count=row_count
        )


_db_connector = None


def get_database_connector() -> DatabaseConnector:
    """Process-wide connector"""
    global _db_connector
    if _db_connector is None:
        _db_connector = DatabaseConnector()
    return _db_connector


def set_database_connector(connector: Optional[DatabaseConnector]) -> None:
    """Replace the process-wide connector (tests, alternate deployments)"""
    global _db_connector
    _db_connector = connector
