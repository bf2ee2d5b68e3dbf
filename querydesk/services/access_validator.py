"""
Access validator
Checks every table and column a query references against the user's allow-list
before the query is allowed to run
"""
from typing import Callable, List, Optional, Protocol

from .dto import PermissionGrant
from .errors import TableAccessDeniedError, ColumnAccessDeniedError
from .database_connector import get_database_connector
from .permission_service import PermissionService, get_permission_service
from .sql_reference_extractor import SqlReferenceExtractor, QueryFieldMap, WILDCARD
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SchemaIntrospector(Protocol):
    """Live table/column metadata of an external database"""

    async def table_exists(self, db_config_id: str, table: str) -> bool:
        ...

    async def get_table_columns(self, db_config_id: str, table: str) -> List[str]:
        ...


class AccessValidator:
    """Allow-list enforcement for ad hoc SQL"""

    def __init__(
        self,
        permission_service: PermissionService,
        introspector: SchemaIntrospector,
        dialect_resolver: Optional[Callable[[str], Optional[str]]] = None
    ):
        """
        Args:
            permission_service: source of the user's grant
            introspector: live schema of the target database
            dialect_resolver: maps a connection id to its sqlglot dialect
        """
        self.permissions = permission_service
        self.introspector = introspector
        self.dialect_resolver = dialect_resolver

    async def validate(self, db_config_id: str, user_id: str, sql: str) -> QueryFieldMap:
        """
        Validate a query against the user's grant on a connection

        Tables that do not exist live are skipped, as are columns that do
        not exist on a live table. A user without a grant may not touch any
        live table.

        Args:
            db_config_id: connection the query targets
            user_id: submitting user
            sql: SQL text

        Returns:
            the extracted references, once every live reference is allowed

        Raises:
            SqlParseError: the SQL cannot be parsed
            TableAccessDeniedError: first live table outside the grant
            ColumnAccessDeniedError: first live column outside the grant
        """
        dialect = self.dialect_resolver(db_config_id) if self.dialect_resolver else None
        field_map = SqlReferenceExtractor(dialect).extract(sql)

        grant = self.permissions.get_grant(user_id, db_config_id)
        if grant is None:
            logger.info(f"No permission grant on record: user_id={user_id}, db_config_id={db_config_id}")
            grant = PermissionGrant(user_id=user_id, db_config_id=db_config_id)

        for table in field_map.tables():
            if not await self.introspector.table_exists(db_config_id, table):
                logger.debug(f"Skipping table absent from live schema: {table}")
                continue

            if not grant.allows_table(table):
                logger.warning(
                    f"Table access denied: user_id={user_id}, db_config_id={db_config_id}, table={table}"
                )
                raise TableAccessDeniedError(table)

            live_columns = await self.introspector.get_table_columns(db_config_id, table)
            live = {column.casefold(): column for column in live_columns}

            referenced = field_map.ordered_columns(table)
            if WILDCARD in referenced:
                referenced = [c for c in referenced if c != WILDCARD] + list(live_columns)

            for column in referenced:
                if column.casefold() not in live:
                    continue
                if not grant.allows_column(table, column):
                    logger.warning(
                        f"Column access denied: user_id={user_id}, db_config_id={db_config_id}, "
                        f"table={table}, column={column}"
                    )
                    raise ColumnAccessDeniedError(table, column)

        logger.info(
            f"Query validated: user_id={user_id}, db_config_id={db_config_id}, "
            f"tables={field_map.tables()}"
        )
        return field_map


def get_access_validator() -> AccessValidator:
    """Validator backed by the process-wide connector's live schema"""
    connector = get_database_connector()
    return AccessValidator(
        get_permission_service(),
        connector,
        dialect_resolver=connector.get_dialect
    )
