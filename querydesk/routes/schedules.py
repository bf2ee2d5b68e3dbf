"""
Scheduled report API routes
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ValidationError

from ..middleware import get_current_user_id
from ..models.scheduled_report import ScheduledReport
from ..services.dto import ScheduleRequest
from ..services.errors import (
    AccessDeniedError,
    ConnectionNotFoundError,
    ScheduleConfigurationError,
    SqlParseError,
)
from ..services.schedule_service import get_schedule_service
from ..utils.logger import get_logger
from ..utils.datetime_helper import to_iso_string

logger = get_logger(__name__)
router = APIRouter(prefix="/api/schedules", tags=["schedules"])


class ScheduleResponse(BaseModel):
    id: int
    db_config_id: str
    sql_query: str
    format: str
    email: str
    status: str
    frequency: str
    timezone: str
    scheduled_time_utc: Optional[str]
    end_date: Optional[str]
    days_of_week: List[int]
    day_of_month: Optional[int]
    last_run_time_utc: Optional[str]
    next_run_time_utc: Optional[str]
    retry_count: int
    last_error: Optional[str]
    created_by: Optional[str]


def _to_response(report: ScheduledReport) -> ScheduleResponse:
    return ScheduleResponse(
        id=report.id,
        db_config_id=report.db_config_id,
        sql_query=report.sql_query,
        format=report.format,
        email=report.email,
        status=report.status,
        frequency=report.frequency,
        timezone=report.timezone,
        scheduled_time_utc=to_iso_string(report.scheduled_time_utc),
        end_date=to_iso_string(report.end_date),
        days_of_week=report.get_days_of_week(),
        day_of_month=report.day_of_month,
        last_run_time_utc=to_iso_string(report.last_run_time_utc),
        next_run_time_utc=to_iso_string(report.next_run_time_utc),
        retry_count=report.retry_count or 0,
        last_error=report.last_error,
        created_by=report.created_by
    )


@router.post("", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(request: ScheduleRequest, user_id: str = Depends(get_current_user_id)):
    """
    Schedule a report

    scheduled_time and end_date are wall-clock times in ``timezone`` and are
    stored in UTC. The query is validated against the caller's grant.
    """
    logger.info(
        f"Create schedule request: user_id={user_id}, db_config_id={request.db_config_id}, "
        f"frequency={request.frequency}"
    )
    try:
        report = await get_schedule_service().create_schedule(request, created_by=user_id)
        return _to_response(report)

    except AccessDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except ConnectionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (SqlParseError, ScheduleConfigurationError, ValidationError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create schedule: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create schedule: {str(e)}"
        )


@router.get("", response_model=List[ScheduleResponse])
async def list_schedules(user_id: str = Depends(get_current_user_id)):
    """Schedules created by the caller"""
    try:
        return [_to_response(r) for r in get_schedule_service().list_schedules(created_by=user_id)]
    except Exception as e:
        logger.error(f"Failed to list schedules: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list schedules: {str(e)}"
        )


def _get_owned(report_id: int, user_id: str) -> ScheduledReport:
    report = get_schedule_service().get_schedule(report_id)
    if report is None or report.created_by != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scheduled report not found: {report_id}"
        )
    return report


@router.get("/{report_id}", response_model=ScheduleResponse)
async def get_schedule(report_id: int, user_id: str = Depends(get_current_user_id)):
    return _to_response(_get_owned(report_id, user_id))


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(report_id: int, user_id: str = Depends(get_current_user_id)):
    _get_owned(report_id, user_id)
    try:
        get_schedule_service().delete_schedule(report_id)
    except Exception as e:
        logger.error(f"Failed to delete schedule: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete schedule: {str(e)}"
        )
    return None
