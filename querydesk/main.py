"""
QueryDesk API entry point
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from querydesk.database import init_database, get_database
from querydesk.utils.logger import setup_logger
from querydesk.middleware import UserContextMiddleware
from querydesk.routes import (
    databases_router,
    permissions_router,
    queries_router,
    schedules_router,
)
from querydesk.services.database_connector import get_database_connector
from querydesk.services.email_service import EmailService
from querydesk.services.report_renderer import ReportRenderer
from querydesk.services.schedule_service import ScheduleService
from querydesk.services.scheduler_service import (
    ReportScheduler,
    SchedulerConfig,
    get_report_scheduler,
    set_report_scheduler,
)

load_dotenv()

logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    worker_id = os.getpid()
    logger.info(f"Worker {worker_id} starting")

    try:
        init_database()
    except Exception as e:
        logger.error(f"Worker {worker_id} failed to initialise the config database: {e}", exc_info=True)
        raise

    config = SchedulerConfig.from_env()
    scheduler = None
    if config.enabled:
        scheduler = ReportScheduler(
            ScheduleService(get_database()),
            get_database_connector(),
            ReportRenderer(),
            EmailService(),
            config
        )
        set_report_scheduler(scheduler)
        scheduler.start()
    else:
        logger.info("Report scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    logger.info(f"Worker {worker_id} shutting down")
    if scheduler is not None:
        await scheduler.stop()
        set_report_scheduler(None)
    get_database_connector().close_all_connections()


app = FastAPI(
    title="QueryDesk API",
    description="Permission-checked ad hoc SQL and scheduled report delivery",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(databases_router)
app.include_router(permissions_router)
app.include_router(queries_router)
app.include_router(schedules_router)

app.add_middleware(UserContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    scheduler = get_report_scheduler()
    return {
        "status": "healthy",
        "scheduler": "running" if scheduler is not None and scheduler.running else "stopped",
    }


if __name__ == "__main__":
    import uvicorn
    host = os.getenv("BACKEND_HOST", "0.0.0.0")
    port = int(os.getenv("BACKEND_PORT", 8000))
    log_level = os.getenv("LOG_LEVEL", "info").lower()

    logger.info(f"Starting server on {host}:{port}, log_level={log_level}")

    uvicorn.run(
        "querydesk.main:app",
        host=host,
        port=port,
        log_level=log_level,
        access_log=log_level == "debug"
    )
