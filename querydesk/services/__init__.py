"""
Service layer
"""
from .encryption_service import EncryptionService, get_encryption_service
from .database_connector import DatabaseConnector, get_database_connector
from .sql_reference_extractor import (
    QueryFieldMap,
    SqlReferenceExtractor,
    extract_field_references,
)
from .permission_service import PermissionService, get_permission_service
from .access_validator import AccessValidator, get_access_validator
from .query_service import QueryService, get_query_service
from .recurrence import compute_next_run, validate_recurrence
from .report_renderer import ReportRenderer, ReportData, RenderedReport
from .email_service import EmailService, SMTPConfig
from .schedule_service import ScheduleService, get_schedule_service
from .scheduler_service import ReportScheduler, SchedulerConfig, TickSummary
from .errors import (
    QueryDeskError,
    SqlParseError,
    AccessDeniedError,
    TableAccessDeniedError,
    ColumnAccessDeniedError,
    ConnectionNotFoundError,
    ScheduleConfigurationError,
    TransientExecutionError,
    RenderError,
    EmailDispatchError,
)

__all__ = [
    "EncryptionService",
    "get_encryption_service",
    "DatabaseConnector",
    "get_database_connector",
    "QueryFieldMap",
    "SqlReferenceExtractor",
    "extract_field_references",
    "PermissionService",
    "get_permission_service",
    "AccessValidator",
    "get_access_validator",
    "QueryService",
    "get_query_service",
    "compute_next_run",
    "validate_recurrence",
    "ReportRenderer",
    "ReportData",
    "RenderedReport",
    "EmailService",
    "SMTPConfig",
    "ScheduleService",
    "get_schedule_service",
    "ReportScheduler",
    "SchedulerConfig",
    "TickSummary",
    "QueryDeskError",
    "SqlParseError",
    "AccessDeniedError",
    "TableAccessDeniedError",
    "ColumnAccessDeniedError",
    "ConnectionNotFoundError",
    "ScheduleConfigurationError",
    "TransientExecutionError",
    "RenderError",
    "EmailDispatchError",
]
