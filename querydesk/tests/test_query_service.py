"""
Query service tests
"""
import pytest
from unittest.mock import AsyncMock, Mock

from querydesk.services.access_validator import AccessValidator
from querydesk.services.database_connector import DatabaseConnector
from querydesk.services.dto import PermissionGrant
from querydesk.services.errors import TableAccessDeniedError
from querydesk.services.query_service import QueryService


@pytest.mark.asyncio
async def test_denied_query_never_reaches_the_database():
    validator = Mock(spec=AccessValidator)
    validator.validate = AsyncMock(side_effect=TableAccessDeniedError("Orders"))
    connector = Mock(spec=DatabaseConnector)
    connector.execute_query = AsyncMock()

    service = QueryService(validator, connector)

    with pytest.raises(TableAccessDeniedError):
        await service.execute_validated("db1", "u1", "SELECT Id FROM Orders")

    connector.execute_query.assert_not_awaited()


@pytest.mark.asyncio
async def test_validated_query_returns_rows(warehouse, connector, permission_service):
    permission_service.create_grant(PermissionGrant(
        user_id="u1",
        db_config_id=warehouse,
        allowed_tables={"employees", "departments"},
        allowed_columns={"employees": {"name", "dept_id"}, "departments": {"id", "name"}}
    ))
    service = QueryService(
        AccessValidator(permission_service, connector, dialect_resolver=connector.get_dialect),
        connector,
        timeout=10
    )

    result = await service.execute_validated(
        warehouse,
        "u1",
        "SELECT e.name, d.name AS department FROM employees e "
        "JOIN departments d ON e.dept_id = d.id ORDER BY e.name"
    )

    assert result.columns == ["name", "department"]
    assert result.data == [
        {"name": "Alice", "department": "Sales"},
        {"name": "Bob", "department": "Support"},
    ]
    assert result.row_count == 2
