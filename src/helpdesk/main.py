"""
Helpdesk SLA Engine - Main Application
=======================================

SLA tracking and escalation service for helpdesk tickets.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, business-hours clock
- Infrastructure: Database, Slack, policy file watcher, scheduler
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request

from helpdesk.config import settings
from helpdesk.core import ApplicationException
from helpdesk.infrastructure.database import (
    close_database,
    create_tables,
    get_session_context,
    init_database,
)
from helpdesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from helpdesk.shared.infrastructure.logging import get_logger, setup_logging
from helpdesk.sla.infrastructure import (
    SLAConfigManager,
    SLAScheduler,
    SlackClient,
    build_sla_services,
)
from helpdesk.sla.interfaces import sla_router

logger = get_logger(__name__)


async def run_sla_scan(app: FastAPI) -> None:
    """Background SLA sweep, one session per run."""
    async with get_session_context() as session:
        services = build_sla_services(
            session,
            app.state.sla_config_manager,
            slack_client=app.state.slack_client,
            scan_budget_seconds=settings.sla_scan_budget_seconds,
            escalate_on_scan=settings.sla_escalate_on_scan,
        )
        await services.scanner.scan()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Load SLA policy and watch it for changes
    4. Start SLA sweep scheduler

    SHUTDOWN:
    1. Stop SLA scheduler
    2. Stop policy watcher
    3. Close Slack client
    4. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting SLA engine", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    if settings.environment in ("development", "test"):
        # Deployments manage the schema with migrations
        try:
            await create_tables()
        except Exception as e:
            logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    sla_config_manager = SLAConfigManager()
    sla_config_manager.load(settings.sla_config_path)
    sla_config_manager.start_watching()
    app.state.sla_config_manager = sla_config_manager

    slack_client = SlackClient()
    app.state.slack_client = slack_client

    sla_scheduler = None
    if settings.sla_scan_interval_seconds > 0:
        sla_scheduler = SLAScheduler(interval_seconds=settings.sla_scan_interval_seconds)

        async def sla_scan_job():
            await run_sla_scan(app)

        await sla_scheduler.start(sla_scan_job)
    else:
        logger.info("SLA scheduler disabled")
    app.state.sla_scheduler = sla_scheduler

    logger.info("SLA engine started")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down SLA engine")

    if sla_scheduler:
        await sla_scheduler.stop()

    sla_config_manager.stop_watching()
    await slack_client.close()
    await close_database()

    logger.info("SLA engine shutdown complete")


app = FastAPI(
    title="Helpdesk SLA Engine",
    description="""
    ## SLA Tracking and Escalation

    Internal API used by the ticket lifecycle and operators.

    **Endpoints:**
    - `GET /sla/tickets/{id}/metrics` - SLA metrics for a ticket
    - `POST /sla/tickets/{id}/status` - Sync pause state after a status change
    - `POST /sla/tickets/{id}/escalate` - Escalate one ticket
    - `POST /sla/tickets/escalate` - Escalate a batch of tickets
    - `POST /sla/scan` - Run one warning sweep now
    - `POST /sla/targets/recalculate` - Recalculate stored targets

    Elapsed time is measured in business hours of the ticket's organization.
    Waiting-on-customer time freezes both clocks.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(sla_router)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(request.app.state, "sla_scheduler", None)
    config_manager = getattr(request.app.state, "sla_config_manager", None)
    slack_client = getattr(request.app.state, "slack_client", None)

    checks = {
        "sla_config": "loaded" if config_manager is not None else "not_loaded",
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "slack": "configured" if slack_client and slack_client.enabled else "not_configured",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "helpdesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
