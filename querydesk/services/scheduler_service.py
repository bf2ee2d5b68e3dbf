"""
Report scheduler
Background loop that runs due scheduled reports and emails the results
"""
import asyncio
import os
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import BaseModel

from ..models.scheduled_report import ScheduledReport, STATUS_ERROR_PREFIX
from .database_connector import DatabaseConnector
from .email_service import EmailService
from .errors import EmailDispatchError, TransientExecutionError
from .report_renderer import ReportData, ReportRenderer
from .schedule_service import ScheduleService
from ..utils.datetime_helper import utc_now_naive
from ..utils.logger import get_logger, log_error_with_context, log_sql_error

logger = get_logger(__name__)

EMAIL_SUBJECT = "Your Scheduled Report"
EMAIL_BODY = "Please find your scheduled report attached."

RETRYABLE_ERRORS = (TransientExecutionError, EmailDispatchError)


class SchedulerConfig(BaseModel):
    """Scheduler settings"""
    enabled: bool = True
    poll_interval: float = 60.0
    query_timeout: float = 300.0
    max_retries: int = 3
    retry_delay: float = 300.0
    lease_seconds: float = 3600.0

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        return cls(
            enabled=os.getenv("SCHEDULER_ENABLED", "true").lower() == "true",
            poll_interval=float(os.getenv("SCHEDULER_POLL_INTERVAL_SECONDS", "60")),
            query_timeout=float(os.getenv("REPORT_QUERY_TIMEOUT_SECONDS", "300")),
            max_retries=int(os.getenv("REPORT_MAX_RETRIES", "3")),
            retry_delay=float(os.getenv("REPORT_RETRY_DELAY_SECONDS", "300")),
            lease_seconds=float(os.getenv("SCHEDULER_LEASE_SECONDS", "3600")),
        )


class TickSummary(BaseModel):
    """Outcome of one scheduler tick"""
    due: int = 0
    succeeded: List[int] = []
    retried: List[int] = []
    failed: List[int] = []
    skipped: List[int] = []


def format_error_status(error: BaseException) -> str:
    """
    Status string stored on a failed report

    ``Error: <message>``, followed by `` Inner Error: <cause>`` when the
    exception was raised from another one.
    """
    status = f"{STATUS_ERROR_PREFIX}: {error}"
    cause = error.__cause__
    if cause is not None:
        status += f" Inner Error: {cause}"
    return status


class ReportScheduler:
    """Polls the schedule store and runs due reports one at a time"""

    def __init__(
        self,
        schedule_service: ScheduleService,
        connector: DatabaseConnector,
        renderer: ReportRenderer,
        email_service: EmailService,
        config: Optional[SchedulerConfig] = None
    ):
        self.schedules = schedule_service
        self.connector = connector
        self.renderer = renderer
        self.email_service = email_service
        self.config = config or SchedulerConfig.from_env()
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop on the running event loop"""
        if self.running:
            logger.warning("Report scheduler already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run_forever(), name="report-scheduler")
        logger.info(f"Report scheduler started: poll_interval={self.config.poll_interval}s")

    async def stop(self) -> None:
        """Ask the loop to exit and wait for the current tick to finish"""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Report scheduler stopped")

    async def run_forever(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_once(utc_now_naive())
            except Exception as e:
                # store unreachable etc.; try again next tick
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def run_once(self, now: datetime) -> TickSummary:
        """
        Run every report due at ``now``

        Reports run sequentially; a failing report never stops the others.

        Args:
            now: naive UTC time of this tick

        Returns:
            TickSummary listing report ids by outcome
        """
        due = self.schedules.get_due_reports(now, self.config.lease_seconds)
        summary = TickSummary(due=len(due))
        if due:
            logger.info(f"Scheduler tick: {len(due)} report(s) due at {now.isoformat()}")

        for report in due:
            if not self.schedules.claim(report.id, now, self.config.lease_seconds):
                logger.info(f"Report {report.id} claimed by another worker, skipping")
                summary.skipped.append(report.id)
                continue

            try:
                await self._run_report(report, now)
            except RETRYABLE_ERRORS as e:
                if self._handle_retryable(report, e, now):
                    summary.retried.append(report.id)
                else:
                    summary.failed.append(report.id)
            except Exception as e:
                self._fail(report, e)
                summary.failed.append(report.id)
            else:
                try:
                    updated = self.schedules.mark_succeeded(report.id, now)
                except Exception as e:
                    # delivered already; leave due-selection so it is not sent again
                    self._fail(report, e)
                    summary.failed.append(report.id)
                    continue

                logger.info(
                    f"Report {report.id} delivered to {report.email}: "
                    f"status={updated.status}, next_run={updated.next_run_time_utc}"
                )
                summary.succeeded.append(report.id)

        return summary

    async def _run_report(self, report: ScheduledReport, now: datetime) -> None:
        self.connector.get_config(report.db_config_id)

        try:
            result = await self.connector.execute_query(
                report.db_config_id,
                report.sql_query,
                timeout=self.config.query_timeout
            )
        except TransientExecutionError as e:
            log_sql_error(logger, report.sql_query, report.db_config_id, e, report_id=report.id)
            raise

        rendered = await self.renderer.render(
            ReportData(columns=result.columns, data=result.data, generated_at=now),
            report.format
        )

        await self.email_service.send_email(
            to=report.email,
            subject=EMAIL_SUBJECT,
            body=EMAIL_BODY,
            attachment=rendered.content,
            attachment_name=rendered.filename,
            mime_type=rendered.mime_type
        )

    def _handle_retryable(self, report: ScheduledReport, error: Exception, now: datetime) -> bool:
        """Returns True if another attempt was scheduled"""
        attempt = (report.retry_count or 0) + 1
        if attempt > self.config.max_retries:
            self._fail(report, error)
            return False

        retry_at = now + timedelta(seconds=self.config.retry_delay * attempt)
        if report.end_date is not None and retry_at > report.end_date:
            logger.warning(
                f"Report {report.id} retry at {retry_at.isoformat()} falls after end date "
                f"{report.end_date.isoformat()}, not retrying"
            )
            self._fail(report, error)
            return False

        self.schedules.mark_retry(report.id, str(error), retry_at)
        logger.warning(
            f"Report {report.id} failed (attempt {attempt}/{self.config.max_retries}), "
            f"retrying at {retry_at.isoformat()}: {error}"
        )
        return True

    def _fail(self, report: ScheduledReport, error: Exception) -> None:
        status = format_error_status(error)
        self.schedules.mark_failed(report.id, status)
        log_error_with_context(
            logger,
            f"Scheduled report {report.id} failed",
            error,
            {"report_id": report.id, "db_config_id": report.db_config_id, "status": status}
        )


_scheduler: Optional[ReportScheduler] = None


def get_report_scheduler() -> Optional[ReportScheduler]:
    """Scheduler started by the application, if any"""
    return _scheduler


def set_report_scheduler(scheduler: Optional[ReportScheduler]) -> None:
    global _scheduler
    _scheduler = scheduler
