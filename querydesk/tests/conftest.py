"""
Shared test fixtures
"""
import sqlite3

import pytest
from cryptography.fernet import Fernet

from querydesk.database import Database, set_database
from querydesk.models.database_config import DatabaseConfig
from querydesk.services.database_connector import DatabaseConnector, set_database_connector
from querydesk.services.encryption_service import EncryptionService
from querydesk.services.permission_service import PermissionService

WAREHOUSE_ID = "warehouse-001"


@pytest.fixture
def config_db():
    """In-memory config database, installed as the process-wide one"""
    db = Database("sqlite://")
    db.create_tables()
    set_database(db)
    yield db
    set_database(None)
    db.engine.dispose()


@pytest.fixture
def warehouse_path(tmp_path):
    """External SQLite database with a few tables, a view and sample rows"""
    path = tmp_path / "warehouse.db"
    conn = sqlite3.connect(str(path))
    cursor = conn.cursor()
    cursor.execute("""
        CREATE TABLE Orders (
            Id INTEGER PRIMARY KEY,
            Total REAL,
            Secret TEXT
        )
    """)
    cursor.execute("""
        CREATE TABLE employees (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            salary REAL,
            dept_id INTEGER
        )
    """)
    cursor.execute("CREATE TABLE departments (id INTEGER PRIMARY KEY, name TEXT)")
    cursor.execute("CREATE VIEW order_totals AS SELECT Id, Total FROM Orders")
    cursor.executemany(
        "INSERT INTO Orders (Id, Total, Secret) VALUES (?, ?, ?)",
        [(1, 120.5, "s1"), (2, 80.0, "s2"), (3, None, "s3")]
    )
    cursor.executemany(
        "INSERT INTO employees (id, name, salary, dept_id) VALUES (?, ?, ?, ?)",
        [(1, "Alice", 5000.0, 1), (2, "Bob", 4200.0, 2)]
    )
    cursor.executemany(
        "INSERT INTO departments (id, name) VALUES (?, ?)",
        [(1, "Sales"), (2, "Support")]
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def warehouse(config_db, warehouse_path):
    """The external database registered as a connection"""
    with config_db.get_session() as session:
        session.add(DatabaseConfig(
            id=WAREHOUSE_ID,
            name="Warehouse",
            type="sqlite",
            url=f"sqlite:///{warehouse_path}",
            is_active=True
        ))
    return WAREHOUSE_ID


@pytest.fixture
def connector(config_db):
    """Connector over the test config database, installed as the process-wide one"""
    db_connector = DatabaseConnector(config_db, EncryptionService(Fernet.generate_key()))
    set_database_connector(db_connector)
    yield db_connector
    db_connector.close_all_connections()
    set_database_connector(None)


@pytest.fixture
def permission_service(config_db):
    return PermissionService(config_db)
