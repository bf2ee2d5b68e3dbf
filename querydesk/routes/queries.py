"""
Ad hoc query API routes
"""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..middleware import get_current_user_id
from ..services.access_validator import get_access_validator
from ..services.errors import (
    AccessDeniedError,
    ConnectionNotFoundError,
    SqlParseError,
    TransientExecutionError,
)
from ..services.query_service import get_query_service
from ..utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/api/queries", tags=["queries"])


class QueryRequest(BaseModel):
    db_config_id: str = Field(..., description="Connection id")
    sql: str = Field(..., description="SQL text")


class ValidateResponse(BaseModel):
    allowed: bool
    references: Dict[str, List[str]]


class ExecuteResponse(BaseModel):
    columns: List[str]
    data: List[Dict[str, Any]]
    row_count: int


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, AccessDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, SqlParseError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, ConnectionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, TransientExecutionError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    logger.error(f"Query request failed: {str(e)}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Query request failed: {str(e)}"
    )


@router.post("/validate", response_model=ValidateResponse)
async def validate_query(request: QueryRequest, user_id: str = Depends(get_current_user_id)):
    """Check a query against the caller's grant without running it"""
    try:
        field_map = await get_access_validator().validate(request.db_config_id, user_id, request.sql)
    except Exception as e:
        raise _to_http_error(e)

    return ValidateResponse(allowed=True, references=field_map.as_dict())


@router.post("/execute", response_model=ExecuteResponse)
async def execute_query(request: QueryRequest, user_id: str = Depends(get_current_user_id)):
    """Validate, then run a query and return its rows"""
    logger.info(f"Execute query request: user_id={user_id}, db_config_id={request.db_config_id}")
    try:
        result = await get_query_service().execute_validated(request.db_config_id, user_id, request.sql)
    except Exception as e:
        raise _to_http_error(e)

    return ExecuteResponse(columns=result.columns, data=result.data, row_count=result.row_count)
