"""
Permission store
Persists per-user, per-connection allow-lists
"""
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from ..database import Database, get_database
from ..models.database_config import DatabaseConfig
from ..models.permission_grant import PermissionGrant as PermissionGrantModel
from .dto import PermissionGrant
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PermissionService:
    """CRUD over permission grants; JSON encoding stays inside the ORM model"""

    def __init__(self, database: Database):
        """
        Args:
            database: config database
        """
        self.database = database

    @staticmethod
    def _to_dto(model: PermissionGrantModel) -> PermissionGrant:
        return PermissionGrant(
            id=model.id,
            user_id=model.user_id,
            db_config_id=model.db_config_id,
            allowed_tables=set(model.get_allowed_tables()),
            allowed_columns={
                table: set(columns)
                for table, columns in model.get_allowed_columns().items()
            },
        )

    @staticmethod
    def _check_columns_reachable(
        allowed_tables: Iterable[str],
        allowed_columns: Dict[str, Iterable[str]]
    ) -> None:
        tables = {t.casefold() for t in allowed_tables}
        orphaned = [t for t in allowed_columns if t.casefold() not in tables]
        if orphaned:
            raise ValueError(
                f"Columns granted for tables that are not allowed: {', '.join(sorted(orphaned))}"
            )

    def get_grant(self, user_id: str, db_config_id: str) -> Optional[PermissionGrant]:
        """The user's grant on a connection, or None if nothing is on record"""
        with self.database.get_session() as session:
            model = session.query(PermissionGrantModel).filter(
                PermissionGrantModel.user_id == user_id,
                PermissionGrantModel.db_config_id == db_config_id
            ).first()
            return self._to_dto(model) if model else None

    def get_grant_by_id(self, grant_id: int) -> Optional[PermissionGrant]:
        with self.database.get_session() as session:
            model = session.get(PermissionGrantModel, grant_id)
            return self._to_dto(model) if model else None

    def list_grants(
        self,
        user_id: Optional[str] = None,
        db_config_id: Optional[str] = None
    ) -> List[PermissionGrant]:
        with self.database.get_session() as session:
            query = session.query(PermissionGrantModel)
            if user_id is not None:
                query = query.filter(PermissionGrantModel.user_id == user_id)
            if db_config_id is not None:
                query = query.filter(PermissionGrantModel.db_config_id == db_config_id)
            return [self._to_dto(m) for m in query.order_by(PermissionGrantModel.id).all()]

    def create_grant(self, grant: PermissionGrant, created_by: Optional[str] = None) -> PermissionGrant:
        """
        Store a new grant

        Raises:
            ValueError: columns granted for a table that is not allowed, or a
                        grant already exists for this user and connection
        """
        self._check_columns_reachable(grant.allowed_tables, grant.allowed_columns)

        model = PermissionGrantModel(
            user_id=grant.user_id,
            db_config_id=grant.db_config_id,
            created_by=created_by,
        )
        model.set_allowed_tables(grant.allowed_tables)
        model.set_allowed_columns(grant.allowed_columns)

        try:
            with self.database.get_session() as session:
                session.add(model)
                session.flush()
                created = self._to_dto(model)
        except IntegrityError as e:
            raise ValueError(
                f"A grant already exists for user {grant.user_id} on connection {grant.db_config_id}"
            ) from e

        logger.info(
            f"Created permission grant: id={created.id}, user_id={created.user_id}, "
            f"db_config_id={created.db_config_id}, tables={len(created.allowed_tables)}"
        )
        return created

    def update_grant(
        self,
        grant_id: int,
        allowed_tables: Iterable[str],
        allowed_columns: Dict[str, Iterable[str]],
        modified_by: Optional[str] = None
    ) -> Optional[PermissionGrant]:
        """
        Replace the allow-lists of an existing grant

        Returns:
            the updated grant, or None if it does not exist

        Raises:
            ValueError: columns granted for a table that is not allowed
        """
        allowed_tables = set(allowed_tables)
        self._check_columns_reachable(allowed_tables, allowed_columns)

        with self.database.get_session() as session:
            model = session.get(PermissionGrantModel, grant_id)
            if model is None:
                return None

            model.set_allowed_tables(allowed_tables)
            model.set_allowed_columns(allowed_columns)
            model.last_modified_by = modified_by
            session.flush()
            updated = self._to_dto(model)

        logger.info(f"Updated permission grant: id={grant_id}, by={modified_by}")
        return updated

    def has_database_access(self, user_id: str, db_config_id: str) -> bool:
        """True when any grant is on record for the user on this connection"""
        return self.get_grant(user_id, db_config_id) is not None

    def has_table_access(self, user_id: str, db_config_id: str, table: str) -> bool:
        grant = self.get_grant(user_id, db_config_id)
        return grant is not None and grant.allows_table(table)

    def has_column_access(self, user_id: str, db_config_id: str, table: str, column: str) -> bool:
        grant = self.get_grant(user_id, db_config_id)
        return grant is not None and grant.allows_column(table, column)

    def list_user_connections(self, user_id: str) -> List[Dict[str, str]]:
        """
        Connections the user holds a grant on

        Returns:
            [{"db_config_id", "name", "type"}], skipping grants whose
            connection no longer exists
        """
        with self.database.get_session() as session:
            rows = session.query(PermissionGrantModel, DatabaseConfig).join(
                DatabaseConfig, DatabaseConfig.id == PermissionGrantModel.db_config_id
            ).filter(
                PermissionGrantModel.user_id == user_id
            ).order_by(DatabaseConfig.name).all()

            return [
                {"db_config_id": config.id, "name": config.name, "type": config.type}
                for _, config in rows
            ]

    def delete_grant(self, grant_id: int) -> bool:
        with self.database.get_session() as session:
            model = session.get(PermissionGrantModel, grant_id)
            if model is None:
                return False
            session.delete(model)

        logger.info(f"Deleted permission grant: id={grant_id}")
        return True


def get_permission_service() -> PermissionService:
    """Permission store over the process-wide config database"""
    return PermissionService(get_database())
