"""
Scheduled report model
"""
import json
from typing import List

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from .base import Base, TimestampMixin


STATUS_SCHEDULED = "Scheduled"
STATUS_RUNNING = "Running"
STATUS_COMPLETED = "Completed"
STATUS_ERROR_PREFIX = "Error"


class ScheduledReport(Base, TimestampMixin):
    """A query whose results are rendered and emailed on a recurrence"""
    __tablename__ = "scheduled_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    db_config_id = Column(String(36), ForeignKey("database_configs.id"), nullable=False, index=True)
    sql_query = Column(Text, nullable=False)
    format = Column(String(10), nullable=False, default="pdf")  # pdf or excel
    email = Column(String(320), nullable=False)
    status = Column(Text, nullable=False, default=STATUS_SCHEDULED, index=True)
    frequency = Column(String(20), nullable=False, default="once")  # once, daily, weekly, monthly
    timezone = Column(String(64), nullable=False, default="UTC")
    scheduled_time_utc = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    days_of_week = Column(Text, nullable=True)  # JSON array of 0-6, Sunday = 0
    day_of_month = Column(Integer, nullable=True)
    last_run_time_utc = Column(DateTime, nullable=True)
    next_run_time_utc = Column(DateTime, nullable=True, index=True)
    retry_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    claimed_at = Column(DateTime, nullable=True)
    created_by = Column(String(255), nullable=True)

    def get_days_of_week(self) -> List[int]:
        return json.loads(self.days_of_week) if self.days_of_week else []

    def set_days_of_week(self, days) -> None:
        self.days_of_week = json.dumps(sorted(set(days))) if days else None

    def __repr__(self):
        return (
            f"<ScheduledReport(id={self.id}, frequency={self.frequency}, "
            f"status={self.status}, next_run={self.next_run_time_utc})>"
        )
