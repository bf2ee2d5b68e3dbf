"""
Schedule store
Creation-time validation and state transitions of scheduled reports
"""
from datetime import datetime, timedelta
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import and_, or_

from ..database import Database, get_database
from ..models.database_config import DatabaseConfig
from ..models.scheduled_report import (
    ScheduledReport,
    STATUS_SCHEDULED,
    STATUS_RUNNING,
    STATUS_COMPLETED,
)
from .dto import ScheduleRequest
from .errors import ConnectionNotFoundError, ScheduleConfigurationError
from .recurrence import compute_next_run, validate_recurrence
from .report_renderer import FORMAT_PDF, FORMAT_EXCEL
from ..utils.datetime_helper import to_utc_naive
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .access_validator import AccessValidator

logger = get_logger(__name__)


class ScheduleService:
    """Persistence and state transitions for ScheduledReport rows"""

    def __init__(self, database: Database, validator: Optional["AccessValidator"] = None):
        """
        Args:
            database: config database
            validator: when given, a schedule's SQL is checked against the
                       creating user's grant before it is stored
        """
        self.database = database
        self.validator = validator

    async def create_schedule(self, request: ScheduleRequest, created_by: Optional[str] = None) -> ScheduledReport:
        """
        Validate and store a new schedule

        The scheduled time and end date are converted from the request's
        timezone to UTC and the first computed next run is stored with the
        report.

        Raises:
            ValueError: missing or malformed fields
            ScheduleConfigurationError: invalid recurrence settings
            ConnectionNotFoundError: unknown connection
            SqlParseError, AccessDeniedError: the creator may not run the query
        """
        if not request.sql_query.strip() or not request.email.strip():
            raise ValueError("Missing required fields")

        fmt = (request.format or "").lower()
        if fmt not in (FORMAT_PDF, FORMAT_EXCEL):
            raise ValueError("Invalid format. Must be one of: pdf, excel")

        frequency = validate_recurrence(request.frequency, request.days_of_week, request.day_of_month)
        timezone = request.timezone or "UTC"

        with self.database.get_session() as session:
            db_config = session.get(DatabaseConfig, request.db_config_id)
            if db_config is None or not db_config.is_active:
                raise ConnectionNotFoundError(request.db_config_id)

        if self.validator is not None and created_by:
            await self.validator.validate(request.db_config_id, created_by, request.sql_query)

        report = ScheduledReport(
            db_config_id=request.db_config_id,
            sql_query=request.sql_query,
            format=fmt,
            email=request.email.strip(),
            frequency=frequency,
            timezone=timezone,
            scheduled_time_utc=to_utc_naive(request.scheduled_time, timezone),
            end_date=to_utc_naive(request.end_date, timezone) if request.end_date else None,
            day_of_month=request.day_of_month if frequency == "monthly" else None,
            status=STATUS_SCHEDULED,
            retry_count=0,
            created_by=created_by,
        )
        report.set_days_of_week(request.days_of_week if frequency == "weekly" else [])

        if report.end_date is not None and report.end_date < report.scheduled_time_utc:
            raise ScheduleConfigurationError("End date must not be before the scheduled time")

        report.next_run_time_utc = compute_next_run(report)

        with self.database.get_session() as session:
            session.add(report)

        logger.info(
            f"Scheduled report created: id={report.id}, frequency={frequency}, "
            f"scheduled_time_utc={report.scheduled_time_utc}, next_run={report.next_run_time_utc}"
        )
        return report

    def get_schedule(self, report_id: int) -> Optional[ScheduledReport]:
        with self.database.get_session() as session:
            return session.get(ScheduledReport, report_id)

    def list_schedules(self, created_by: Optional[str] = None) -> List[ScheduledReport]:
        with self.database.get_session() as session:
            query = session.query(ScheduledReport)
            if created_by is not None:
                query = query.filter(ScheduledReport.created_by == created_by)
            return query.order_by(ScheduledReport.scheduled_time_utc.desc()).all()

    def delete_schedule(self, report_id: int) -> bool:
        with self.database.get_session() as session:
            report = session.get(ScheduledReport, report_id)
            if report is None:
                return False
            session.delete(report)
        logger.info(f"Scheduled report deleted: id={report_id}")
        return True

    # ============ Scheduler state transitions ============

    def get_due_reports(self, now: datetime, lease_seconds: float) -> List[ScheduledReport]:
        """
        Reports due at ``now``

        A report is due when it is Scheduled and either its next run has
        passed, or it has never run, has no pending retry and its anchor time
        has passed. Running reports whose claim is older than the lease are
        picked up again.
        """
        stale_before = now - timedelta(seconds=lease_seconds)
        with self.database.get_session() as session:
            return session.query(ScheduledReport).filter(
                or_(
                    and_(
                        ScheduledReport.status == STATUS_SCHEDULED,
                        or_(
                            ScheduledReport.next_run_time_utc <= now,
                            and_(
                                ScheduledReport.last_run_time_utc.is_(None),
                                ScheduledReport.retry_count == 0,
                                ScheduledReport.scheduled_time_utc <= now,
                            ),
                        ),
                    ),
                    and_(
                        ScheduledReport.status == STATUS_RUNNING,
                        ScheduledReport.claimed_at <= stale_before,
                    ),
                )
            ).order_by(ScheduledReport.id).all()

    def claim(self, report_id: int, now: datetime, lease_seconds: float) -> bool:
        """
        Move a report to Running unless another worker got there first

        Returns:
            True if this caller owns the run
        """
        stale_before = now - timedelta(seconds=lease_seconds)
        with self.database.get_session() as session:
            claimed = session.query(ScheduledReport).filter(
                ScheduledReport.id == report_id,
                or_(
                    ScheduledReport.status == STATUS_SCHEDULED,
                    and_(
                        ScheduledReport.status == STATUS_RUNNING,
                        ScheduledReport.claimed_at <= stale_before,
                    ),
                ),
            ).update(
                {ScheduledReport.status: STATUS_RUNNING, ScheduledReport.claimed_at: now},
                synchronize_session=False
            )
        return claimed == 1

    def mark_succeeded(self, report_id: int, now: datetime) -> ScheduledReport:
        """
        Record a successful run and compute the next one

        Status becomes Completed when there is no next run, else Scheduled.
        """
        with self.database.get_session() as session:
            report = session.get(ScheduledReport, report_id)
            report.last_run_time_utc = now
            report.next_run_time_utc = compute_next_run(report)
            report.status = STATUS_COMPLETED if report.next_run_time_utc is None else STATUS_SCHEDULED
            report.retry_count = 0
            report.last_error = None
            report.claimed_at = None
            return report

    def mark_retry(self, report_id: int, message: str, retry_at: datetime) -> ScheduledReport:
        """Keep the report Scheduled and try again at ``retry_at``"""
        with self.database.get_session() as session:
            report = session.get(ScheduledReport, report_id)
            report.retry_count = (report.retry_count or 0) + 1
            report.last_error = message
            report.next_run_time_utc = retry_at
            report.status = STATUS_SCHEDULED
            report.claimed_at = None
            return report

    def mark_failed(self, report_id: int, status_message: str) -> ScheduledReport:
        """Record a terminal failure; the report leaves due-selection"""
        with self.database.get_session() as session:
            report = session.get(ScheduledReport, report_id)
            report.status = status_message
            report.last_error = status_message
            report.claimed_at = None
            return report


def get_schedule_service() -> ScheduleService:
    """Schedule store that validates new schedules against the creator's grant"""
    from .access_validator import get_access_validator
    return ScheduleService(get_database(), validator=get_access_validator())
