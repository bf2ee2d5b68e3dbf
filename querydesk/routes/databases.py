"""
Database connection API routes
"""
import uuid
from typing import List, Optional
from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..services.database_adapters import DatabaseAdapterFactory
from ..services.database_connector import get_database_connector
from ..services.encryption_service import get_encryption_service
from ..database import get_database
from ..models.database_config import DatabaseConfig
from ..utils.logger import get_logger
from ..utils.datetime_helper import to_iso_string

logger = get_logger(__name__)
router = APIRouter(prefix="/api/databases", tags=["databases"])


# ============ Request/Response Models ============

class CreateDatabaseRequest(BaseModel):
    name: str = Field(..., description="Display name")
    type: str = Field(..., description="Database type (sqlite, mysql, postgresql, mssql)")
    url: str = Field(..., description="Connection URL, host:port/database or a SQLite path")
    username: Optional[str] = Field(None, description="Username")
    password: Optional[str] = Field(None, description="Password, stored encrypted")
    description: Optional[str] = Field(None, description="Free-text description")


class UpdateDatabaseRequest(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DatabaseResponse(BaseModel):
    id: str
    name: str
    type: str
    url: str
    username: Optional[str]
    description: Optional[str]
    is_active: bool
    created_at: Optional[str]
    updated_at: Optional[str]


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None


def _to_response(config: DatabaseConfig) -> DatabaseResponse:
    return DatabaseResponse(
        id=config.id,
        name=config.name,
        type=config.type,
        url=config.url,
        username=config.username,
        description=config.description,
        is_active=config.is_active,
        created_at=to_iso_string(config.created_at),
        updated_at=to_iso_string(config.updated_at)
    )


def _check_type(db_type: str):
    if not DatabaseAdapterFactory.is_supported(db_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unsupported database type: {db_type}. Supported types: "
                f"{', '.join(DatabaseAdapterFactory.get_supported_types())}"
            )
        )


# ============ API Endpoints ============

@router.post("", response_model=DatabaseResponse, status_code=status.HTTP_201_CREATED)
async def create_database_config(request: CreateDatabaseRequest, http_request: Request):
    """Register a database connection"""
    _check_type(request.type)
    try:
        logger.info(f"Create connection request: name={request.name}, type={request.type}")

        db_config = DatabaseConfig(
            id=str(uuid.uuid4()),
            name=request.name,
            type=request.type.lower(),
            url=request.url,
            username=request.username,
            encrypted_password=get_encryption_service().encrypt(request.password) or None,
            description=request.description,
            is_active=True,
            created_by=getattr(http_request.state, "user_id", None)
        )

        with get_database().get_session() as session:
            session.add(db_config)
            session.flush()
            session.refresh(db_config)
            response = _to_response(db_config)

        logger.info(f"Connection created: id={db_config.id}")
        return response

    except Exception as e:
        logger.error(f"Failed to create connection: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create connection: {str(e)}"
        )


@router.get("", response_model=List[DatabaseResponse])
async def get_database_configs():
    """List registered connections"""
    try:
        with get_database().get_session() as session:
            configs = session.query(DatabaseConfig).order_by(DatabaseConfig.created_at.desc()).all()
            return [_to_response(config) for config in configs]

    except Exception as e:
        logger.error(f"Failed to list connections: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list connections: {str(e)}"
        )


@router.get("/{config_id}", response_model=DatabaseResponse)
async def get_database_config(config_id: str):
    try:
        with get_database().get_session() as session:
            config = session.get(DatabaseConfig, config_id)
            if not config:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Database connection not found: {config_id}"
                )
            return _to_response(config)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to get connection: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get connection: {str(e)}"
        )


@router.put("/{config_id}", response_model=DatabaseResponse)
async def update_database_config(config_id: str, request: UpdateDatabaseRequest):
    """Update a connection; its cached engine is discarded"""
    if request.type is not None:
        _check_type(request.type)
    try:
        logger.info(f"Update connection request: id={config_id}")

        with get_database().get_session() as session:
            config = session.get(DatabaseConfig, config_id)
            if not config:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Database connection not found: {config_id}"
                )

            if request.name is not None:
                config.name = request.name
            if request.type is not None:
                config.type = request.type.lower()
            if request.url is not None:
                config.url = request.url
            if request.username is not None:
                config.username = request.username
            if request.password is not None:
                config.encrypted_password = get_encryption_service().encrypt(request.password) or None
            if request.description is not None:
                config.description = request.description
            if request.is_active is not None:
                config.is_active = request.is_active

            session.flush()
            session.refresh(config)
            response = _to_response(config)

        get_database_connector().close_connection(config_id)
        logger.info(f"Connection updated: id={config_id}")
        return response

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to update connection: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update connection: {str(e)}"
        )


@router.delete("/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_database_config(config_id: str):
    try:
        with get_database().get_session() as session:
            config = session.get(DatabaseConfig, config_id)
            if not config:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Database connection not found: {config_id}"
                )
            session.delete(config)

        get_database_connector().close_connection(config_id)
        logger.info(f"Connection deleted: id={config_id}")
        return None

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete connection: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete connection: {str(e)}"
        )


@router.post("/{config_id}/test", response_model=ConnectionTestResponse)
async def test_database_connection(config_id: str):
    """Open a connection and run SELECT 1"""
    try:
        with get_database().get_session() as session:
            config = session.get(DatabaseConfig, config_id)
            if not config:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail=f"Database connection not found: {config_id}"
                )

        result = await get_database_connector().test_connection(config)
        logger.info(f"Connection test finished: id={config_id}, success={result.success}")
        return ConnectionTestResponse(
            success=result.success,
            message=result.message,
            error=result.error
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Connection test failed: {str(e)}", exc_info=True)
        return ConnectionTestResponse(
            success=False,
            message="Connection test failed",
            error=str(e)
        )
