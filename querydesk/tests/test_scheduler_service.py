"""
Report scheduler tests
"""
import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock, patch

import pytest

from querydesk.models.scheduled_report import (
    ScheduledReport,
    STATUS_COMPLETED,
    STATUS_SCHEDULED,
)
from querydesk.services.email_service import EmailService
from querydesk.services.errors import EmailDispatchError, RenderError, TransientExecutionError
from querydesk.services.report_renderer import PDF_MIME_TYPE, ReportRenderer
from querydesk.services.schedule_service import ScheduleService
from querydesk.services.scheduler_service import (
    EMAIL_BODY,
    EMAIL_SUBJECT,
    ReportScheduler,
    SchedulerConfig,
    format_error_status,
)

NOW = datetime(2024, 6, 3, 12, 0)


@pytest.fixture
def email_service():
    service = Mock(spec=EmailService)
    service.send_email = AsyncMock(return_value=None)
    return service


@pytest.fixture
def schedule_service(config_db):
    return ScheduleService(config_db)


@pytest.fixture
def scheduler(schedule_service, connector, email_service):
    return ReportScheduler(
        schedule_service,
        connector,
        ReportRenderer(),
        email_service,
        SchedulerConfig(poll_interval=0.01, max_retries=2, retry_delay=300, lease_seconds=3600)
    )


def add_report(config_db, **fields):
    defaults = dict(
        db_config_id="warehouse-001",
        sql_query="SELECT Id, Total FROM Orders ORDER BY Id",
        format="pdf",
        email="ops@example.com",
        status=STATUS_SCHEDULED,
        frequency="once",
        timezone="UTC",
        scheduled_time_utc=NOW - timedelta(hours=1),
        retry_count=0,
    )
    defaults.update(fields)
    report = ScheduledReport(**defaults)
    with config_db.get_session() as session:
        session.add(report)
    return report


@pytest.mark.asyncio
async def test_past_one_off_report_runs_and_completes(warehouse, config_db, scheduler, schedule_service, email_service):
    report = add_report(config_db)

    summary = await scheduler.run_once(NOW)

    assert summary.due == 1
    assert summary.succeeded == [report.id]

    email_service.send_email.assert_awaited_once()
    kwargs = email_service.send_email.call_args.kwargs
    assert kwargs["to"] == "ops@example.com"
    assert kwargs["subject"] == EMAIL_SUBJECT == "Your Scheduled Report"
    assert kwargs["body"] == EMAIL_BODY == "Please find your scheduled report attached."
    assert kwargs["attachment_name"] == "report_20240603_120000.pdf"
    assert kwargs["mime_type"] == PDF_MIME_TYPE
    assert kwargs["attachment"].startswith(b"%PDF")

    stored = schedule_service.get_schedule(report.id)
    assert stored.status == STATUS_COMPLETED
    assert stored.last_run_time_utc == NOW
    assert stored.next_run_time_utc is None

    later = await scheduler.run_once(NOW + timedelta(minutes=1))
    assert later.due == 0
    email_service.send_email.assert_awaited_once()


@pytest.mark.asyncio
async def test_recurring_report_is_rescheduled(warehouse, config_db, scheduler, schedule_service):
    report = add_report(config_db, frequency="daily", format="excel")

    await scheduler.run_once(NOW)

    stored = schedule_service.get_schedule(report.id)
    assert stored.status == STATUS_SCHEDULED
    assert stored.next_run_time_utc == NOW + timedelta(hours=24)

    assert (await scheduler.run_once(NOW + timedelta(hours=1))).due == 0
    assert (await scheduler.run_once(NOW + timedelta(hours=24))).succeeded == [report.id]


@pytest.mark.asyncio
async def test_failing_report_does_not_affect_others(warehouse, config_db, scheduler, schedule_service, email_service):
    broken = add_report(config_db, db_config_id="ghost")
    healthy = add_report(config_db)

    summary = await scheduler.run_once(NOW)

    assert summary.failed == [broken.id]
    assert summary.succeeded == [healthy.id]
    assert schedule_service.get_schedule(broken.id).status == "Error: Database connection not found: ghost"
    assert schedule_service.get_schedule(healthy.id).status == STATUS_COMPLETED

    # errored reports leave due-selection
    assert (await scheduler.run_once(NOW + timedelta(hours=1))).due == 0


@pytest.mark.asyncio
async def test_next_run_failure_does_not_stop_the_tick(warehouse, config_db, scheduler, schedule_service, email_service):
    # weekly without days: delivery works, computing the next run does not
    bad = add_report(config_db, frequency="weekly", days_of_week=None)
    healthy = add_report(config_db)

    summary = await scheduler.run_once(NOW)

    assert summary.failed == [bad.id]
    assert summary.succeeded == [healthy.id]
    assert email_service.send_email.await_count == 2
    assert schedule_service.get_schedule(bad.id).status == (
        "Error: Days of week are required for weekly schedules"
    )
    assert schedule_service.get_schedule(healthy.id).status == STATUS_COMPLETED

    # not picked up again once the lease has expired
    assert (await scheduler.run_once(NOW + timedelta(hours=2))).due == 0
    assert email_service.send_email.await_count == 2


@pytest.mark.asyncio
async def test_retry_after_end_date_is_not_scheduled(warehouse, config_db, scheduler, schedule_service, email_service):
    report = add_report(config_db, frequency="daily", end_date=NOW + timedelta(seconds=60))
    email_service.send_email.side_effect = EmailDispatchError("Failed to send email: busy")

    summary = await scheduler.run_once(NOW)

    assert summary.failed == [report.id]
    assert summary.retried == []
    stored = schedule_service.get_schedule(report.id)
    assert stored.status == "Error: Failed to send email: busy"
    assert stored.next_run_time_utc is None or stored.next_run_time_utc <= stored.end_date
    assert (await scheduler.run_once(NOW + timedelta(seconds=300))).due == 0


@pytest.mark.asyncio
async def test_render_failure_is_not_retried(warehouse, config_db, scheduler, schedule_service):
    report = add_report(config_db)
    scheduler.renderer.render = AsyncMock(side_effect=RenderError("pdf", "boom"))

    summary = await scheduler.run_once(NOW)

    assert summary.failed == [report.id]
    assert schedule_service.get_schedule(report.id).status == "Error: PDF Generation Error: boom"


@pytest.mark.asyncio
async def test_email_failure_is_retried_then_recorded(warehouse, config_db, scheduler, schedule_service, email_service):
    report = add_report(config_db)
    error = EmailDispatchError("Failed to send email: connection refused")
    error.__cause__ = ConnectionRefusedError("connection refused")
    email_service.send_email.side_effect = error

    first = await scheduler.run_once(NOW)
    assert first.retried == [report.id]
    stored = schedule_service.get_schedule(report.id)
    assert stored.status == STATUS_SCHEDULED
    assert stored.retry_count == 1
    assert stored.next_run_time_utc == NOW + timedelta(seconds=300)
    assert stored.last_error == "Failed to send email: connection refused"

    assert (await scheduler.run_once(NOW + timedelta(seconds=299))).due == 0

    second = await scheduler.run_once(NOW + timedelta(seconds=300))
    assert second.retried == [report.id]
    assert schedule_service.get_schedule(report.id).next_run_time_utc == NOW + timedelta(seconds=900)

    third = await scheduler.run_once(NOW + timedelta(seconds=900))
    assert third.failed == [report.id]
    assert schedule_service.get_schedule(report.id).status == (
        "Error: Failed to send email: connection refused Inner Error: connection refused"
    )


@pytest.mark.asyncio
async def test_retried_report_succeeds_and_resets(warehouse, config_db, scheduler, schedule_service, email_service):
    report = add_report(config_db)
    email_service.send_email.side_effect = [EmailDispatchError("busy"), None]

    await scheduler.run_once(NOW)
    summary = await scheduler.run_once(NOW + timedelta(seconds=300))

    assert summary.succeeded == [report.id]
    stored = schedule_service.get_schedule(report.id)
    assert stored.status == STATUS_COMPLETED
    assert stored.retry_count == 0
    assert stored.last_error is None


@pytest.mark.asyncio
async def test_query_timeout_is_transient(warehouse, config_db, scheduler, schedule_service):
    report = add_report(config_db)

    with patch.object(
        scheduler.connector,
        "execute_query",
        AsyncMock(side_effect=TransientExecutionError("Query timed out after 300.0 seconds"))
    ):
        summary = await scheduler.run_once(NOW)

    assert summary.retried == [report.id]
    assert schedule_service.get_schedule(report.id).last_error == "Query timed out after 300.0 seconds"


@pytest.mark.asyncio
async def test_report_claimed_elsewhere_is_skipped(warehouse, config_db, scheduler, email_service):
    report = add_report(config_db)

    with patch.object(scheduler.schedules, "claim", return_value=False):
        summary = await scheduler.run_once(NOW)

    assert summary.skipped == [report.id]
    email_service.send_email.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_and_stop(config_db, scheduler):
    scheduler.start()
    assert scheduler.running

    await asyncio.sleep(0.05)
    await scheduler.stop()

    assert not scheduler.running


def test_error_status_includes_cause():
    try:
        try:
            raise OSError("socket closed")
        except OSError as inner:
            raise TransientExecutionError("Database error") from inner
    except TransientExecutionError as e:
        assert format_error_status(e) == "Error: Database error Inner Error: socket closed"

    assert format_error_status(ValueError("bad")) == "Error: bad"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("SCHEDULER_POLL_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("REPORT_MAX_RETRIES", "0")
    monkeypatch.delenv("REPORT_QUERY_TIMEOUT_SECONDS", raising=False)

    config = SchedulerConfig.from_env()

    assert config.poll_interval == 5.0
    assert config.max_retries == 0
    assert config.query_timeout == 300.0
