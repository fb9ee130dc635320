# ruff: noqa: I001

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hr_portal.api.errors import register_exception_handlers
from hr_portal.api.router import api_router
from hr_portal.config import settings
from hr_portal.core.observability import (
    global_exception_handler,
    request_logging_middleware,
    uptime_seconds,
    utc_now_iso,
)
from hr_portal.core.workflow_catalog import catalog_from_settings
from hr_portal.services.approval_orchestrator import InFlightRegistry

api_prefix = (
    settings.api_prefix
    if settings.api_prefix.startswith("/")
    else f"/{settings.api_prefix}"
    if settings.api_prefix
    else ""
)

logger = logging.getLogger("hr_portal")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url=(f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
    if settings.enable_docs
    else None,
)

# Expose logger for middleware without creating circular imports.
app.state.logger = logger
app.state.settings_cors_origins = list(settings.cors_origins)

# One registry per process: double-submit protection spans requests.
app.state.approval_inflight = InFlightRegistry()

app.add_exception_handler(Exception, global_exception_handler)
register_exception_handlers(app)

# Request-level logging + request correlation id.
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=api_prefix)


def _run_migrations_if_configured() -> None:
    if not settings.run_migrations_on_start:
        return

    # Avoid running migrations during tests.
    if (settings.environment or "").lower() == "test":
        return

    # Import lazily to keep import graph light for non-migration startups.
    from alembic import command
    from alembic.config import Config
    from sqlalchemy.engine.url import make_url

    backend_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(backend_root / "alembic"))

    url_obj = make_url(str(settings.database_url))
    logger.info(
        "migrations_db_target driver=%s host=%s db=%s",
        url_obj.drivername,
        url_obj.host,
        url_obj.database,
    )

    try:
        command.upgrade(alembic_cfg, "head")
        logger.info("migrations_applied")
    except Exception as e:
        # Audit writes fall back to logging, so a failed migration must not block startup.
        logger.error("migrations_failed error=%s", str(e))


def _load_workflow_catalog() -> None:
    # A broken catalog file is a deployment error: fail startup loudly.
    source = catalog_from_settings(settings.workflow_catalog_path)
    app.state.workflow_catalog = source.catalog
    logger.info(
        "workflow_catalog_loaded",
        extra={"origin": source.origin, "request_types": list(source.catalog.request_types())},
    )


@app.on_event("startup")
def _startup():
    logger.info(
        "runtime_config",
        extra={
            "environment": settings.environment,
            "approval_api_base_url": settings.approval_api_base_url,
            "api_prefix": api_prefix,
        },
    )
    _load_workflow_catalog()
    _run_migrations_if_configured()


@app.get("/", tags=["meta"])
def root():
    docs_path = (
        (f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
        if settings.enable_docs
        else None
    )
    return {"message": "HR Approval Portal API", "docs": docs_path}


@app.get("/health", tags=["meta"])
@app.get("/healthz", tags=["meta"])
def healthcheck():
    """Liveness probe; keep payload stable for monitoring systems."""

    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
    }
