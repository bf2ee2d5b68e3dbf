"""
Permission grant API routes
"""
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..middleware import get_current_user_id, require_admin
from ..services.dto import PermissionGrant
from ..services.permission_service import get_permission_service
from ..utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/permissions", tags=["permissions"])


# ============ Request/Response Models ============

class CreatePermissionRequest(BaseModel):
    user_id: str = Field(..., description="User the grant applies to")
    db_config_id: str = Field(..., description="Connection id")
    allowed_tables: List[str] = Field(default_factory=list)
    allowed_columns: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Table name to allowed column names"
    )


class UpdatePermissionRequest(BaseModel):
    allowed_tables: List[str] = Field(default_factory=list)
    allowed_columns: Dict[str, List[str]] = Field(default_factory=dict)


class AccessCheckResponse(BaseModel):
    has_access: bool


class UserConnectionResponse(BaseModel):
    db_config_id: str
    name: str
    type: str


class PermissionResponse(BaseModel):
    id: int
    user_id: str
    db_config_id: str
    allowed_tables: List[str]
    allowed_columns: Dict[str, List[str]]


def _to_response(grant: PermissionGrant) -> PermissionResponse:
    return PermissionResponse(
        id=grant.id,
        user_id=grant.user_id,
        db_config_id=grant.db_config_id,
        allowed_tables=sorted(grant.allowed_tables),
        allowed_columns={t: sorted(cols) for t, cols in grant.allowed_columns.items()}
    )


# ============ API Endpoints ============

@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(request: CreatePermissionRequest, admin_id: str = Depends(require_admin)):
    try:
        grant = get_permission_service().create_grant(
            PermissionGrant(
                user_id=request.user_id,
                db_config_id=request.db_config_id,
                allowed_tables=set(request.allowed_tables),
                allowed_columns={t: set(cols) for t, cols in request.allowed_columns.items()}
            ),
            created_by=admin_id
        )
        return _to_response(grant)

    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create permission grant: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create permission grant: {str(e)}"
        )


@router.get("", response_model=List[PermissionResponse])
async def list_permissions(
    user_id: Optional[str] = None,
    db_config_id: Optional[str] = None,
    admin_id: str = Depends(require_admin)
):
    try:
        grants = get_permission_service().list_grants(user_id=user_id, db_config_id=db_config_id)
        return [_to_response(grant) for grant in grants]

    except Exception as e:
        logger.error(f"Failed to list permission grants: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list permission grants: {str(e)}"
        )


@router.put("/{grant_id}", response_model=PermissionResponse)
async def update_permission(
    grant_id: int,
    request: UpdatePermissionRequest,
    admin_id: str = Depends(require_admin)
):
    """Replace a grant's allow-lists"""
    try:
        grant = get_permission_service().update_grant(
            grant_id,
            request.allowed_tables,
            request.allowed_columns,
            modified_by=admin_id
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to update permission grant: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update permission grant: {str(e)}"
        )

    if grant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Permission grant not found: {grant_id}"
        )
    return _to_response(grant)


@router.delete("/{grant_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(grant_id: int, admin_id: str = Depends(require_admin)):
    try:
        deleted = get_permission_service().delete_grant(grant_id)
    except Exception as e:
        logger.error(f"Failed to delete permission grant: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete permission grant: {str(e)}"
        )

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Permission grant not found: {grant_id}"
        )
    return None


# ============ Caller access checks ============

@router.get("/check/database/{db_config_id}", response_model=AccessCheckResponse)
async def check_database_access(db_config_id: str, user_id: str = Depends(get_current_user_id)):
    try:
        return AccessCheckResponse(
            has_access=get_permission_service().has_database_access(user_id, db_config_id)
        )
    except Exception as e:
        logger.error(f"Failed to check database access: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check database access: {str(e)}"
        )


@router.get("/check/table/{db_config_id}/{table}", response_model=AccessCheckResponse)
async def check_table_access(db_config_id: str, table: str, user_id: str = Depends(get_current_user_id)):
    try:
        return AccessCheckResponse(
            has_access=get_permission_service().has_table_access(user_id, db_config_id, table)
        )
    except Exception as e:
        logger.error(f"Failed to check table access: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check table access: {str(e)}"
        )


@router.get("/check/column/{db_config_id}/{table}/{column}", response_model=AccessCheckResponse)
async def check_column_access(
    db_config_id: str,
    table: str,
    column: str,
    user_id: str = Depends(get_current_user_id)
):
    try:
        return AccessCheckResponse(
            has_access=get_permission_service().has_column_access(user_id, db_config_id, table, column)
        )
    except Exception as e:
        logger.error(f"Failed to check column access: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check column access: {str(e)}"
        )


@router.get("/my-connections", response_model=List[UserConnectionResponse])
async def get_my_connections(user_id: str = Depends(get_current_user_id)):
    """Connections the caller holds a grant on"""
    try:
        return [
            UserConnectionResponse(**connection)
            for connection in get_permission_service().list_user_connections(user_id)
        ]
    except Exception as e:
        logger.error(f"Failed to list connections for user {user_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list connections: {str(e)}"
        )
