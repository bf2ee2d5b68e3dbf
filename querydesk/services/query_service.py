"""
Query service
Validates ad hoc SQL against the submitting user's grant, then runs it
"""
import os
from typing import Optional

from .access_validator import AccessValidator
from .database_connector import DatabaseConnector, get_database_connector
from .dto import QueryExecutionResult
from ..utils.logger import get_logger

logger = get_logger(__name__)


class QueryService:
    """Synchronous request path: validate, then execute"""

    def __init__(
        self,
        validator: AccessValidator,
        connector: DatabaseConnector,
        timeout: Optional[float] = None
    ):
        self.validator = validator
        self.connector = connector
        self.timeout = timeout

    async def execute_validated(
        self,
        db_config_id: str,
        user_id: str,
        sql: str
    ) -> QueryExecutionResult:
        """
        Run a query only after every referenced table and column is allowed

        Raises:
            SqlParseError, AccessDeniedError: validation failed; nothing ran
            ConnectionNotFoundError: unknown connection
            TransientExecutionError: the database failed or timed out
        """
        await self.validator.validate(db_config_id, user_id, sql)

        result = await self.connector.execute_query(db_config_id, sql, timeout=self.timeout)
        logger.info(
            f"Validated query executed: user_id={user_id}, db_config_id={db_config_id}, "
            f"rows={len(result.data)}"
        )
        return QueryExecutionResult(
            columns=result.columns,
            data=result.data,
            row_count=len(result.data)
        )


def get_query_service() -> QueryService:
    from .access_validator import get_access_validator
    timeout = os.getenv("REPORT_QUERY_TIMEOUT_SECONDS")
    return QueryService(
        get_access_validator(),
        get_database_connector(),
        timeout=float(timeout) if timeout else None
    )
