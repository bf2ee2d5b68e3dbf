"""
Permission store tests
"""
import pytest

from querydesk.services.dto import PermissionGrant


def make_grant(user_id="u1", db_config_id="warehouse-001", **fields):
    return PermissionGrant(user_id=user_id, db_config_id=db_config_id, **fields)


def test_create_and_get_grant(warehouse, permission_service):
    created = permission_service.create_grant(
        make_grant(allowed_tables={"Orders"}, allowed_columns={"Orders": {"Id", "Total"}}),
        created_by="admin"
    )

    assert created.id is not None

    grant = permission_service.get_grant("u1", warehouse)
    assert grant.allowed_tables == {"Orders"}
    assert grant.allowed_columns == {"Orders": {"Id", "Total"}}
    assert grant.allows_column("orders", "TOTAL")
    assert not grant.allows_column("orders", "Secret")


def test_missing_grant_is_none(warehouse, permission_service):
    assert permission_service.get_grant("nobody", warehouse) is None


def test_duplicate_grant_is_rejected(warehouse, permission_service):
    permission_service.create_grant(make_grant(allowed_tables={"Orders"}))

    with pytest.raises(ValueError):
        permission_service.create_grant(make_grant(allowed_tables={"employees"}))


def test_columns_require_their_table(warehouse, permission_service):
    with pytest.raises(ValueError):
        permission_service.create_grant(
            make_grant(allowed_tables={"Orders"}, allowed_columns={"employees": {"name"}})
        )


def test_update_replaces_allow_lists(warehouse, permission_service):
    created = permission_service.create_grant(
        make_grant(allowed_tables={"Orders"}, allowed_columns={"Orders": {"Id"}})
    )

    updated = permission_service.update_grant(
        created.id,
        ["employees"],
        {"employees": ["name"]},
        modified_by="admin"
    )

    assert updated.allowed_tables == {"employees"}
    assert updated.allowed_columns == {"employees": {"name"}}
    assert not updated.allows_table("Orders")


def test_update_missing_grant_returns_none(config_db, permission_service):
    assert permission_service.update_grant(999, [], {}) is None


def test_list_and_delete(warehouse, permission_service):
    first = permission_service.create_grant(make_grant(user_id="u1"))
    permission_service.create_grant(make_grant(user_id="u2"))

    assert [g.user_id for g in permission_service.list_grants()] == ["u1", "u2"]
    assert [g.user_id for g in permission_service.list_grants(user_id="u2")] == ["u2"]

    assert permission_service.delete_grant(first.id) is True
    assert permission_service.delete_grant(first.id) is False
    assert permission_service.get_grant_by_id(first.id) is None


def test_access_checks(warehouse, permission_service):
    permission_service.create_grant(make_grant(
        allowed_tables={"Orders"},
        allowed_columns={"Orders": {"Id"}}
    ))

    assert permission_service.has_database_access("u1", warehouse)
    assert not permission_service.has_database_access("u2", warehouse)

    assert permission_service.has_table_access("u1", warehouse, "orders")
    assert not permission_service.has_table_access("u1", warehouse, "employees")
    assert not permission_service.has_table_access("u2", warehouse, "Orders")

    assert permission_service.has_column_access("u1", warehouse, "Orders", "ID")
    assert not permission_service.has_column_access("u1", warehouse, "Orders", "Secret")


def test_list_user_connections(warehouse, permission_service):
    permission_service.create_grant(make_grant())

    assert permission_service.list_user_connections("u1") == [
        {"db_config_id": warehouse, "name": "Warehouse", "type": "sqlite"}
    ]
    assert permission_service.list_user_connections("u2") == []
