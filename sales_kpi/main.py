from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sales_kpi.db import create_engine, create_sessionmaker
from sales_kpi.db_init import init_db
from sales_kpi.errors import StorageError
from sales_kpi.repositories import KpiRepository, SqlKpiRepository
from sales_kpi.routes import auth, daily_kpi, goals, reviews, export, settings as settings_routes, dashboard
from sales_kpi.settings import Settings, get_settings

logger = logging.getLogger("sales_kpi")


def create_app(settings: Settings | None = None, repository: KpiRepository | None = None) -> FastAPI:
    """Build the API.

    Without an explicit ``repository`` the app owns a SQL engine built from
    ``settings.database_url``; the schema is created on startup and the
    engine disposed on shutdown.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    app = FastAPI(title="Sales KPI API", version="0.1.0")
    app.state.settings = settings

    engine = None
    if repository is None:
        engine = create_engine(settings.database_url)
        repository = SqlKpiRepository(create_sessionmaker(engine))
    app.state.repository = repository

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (auth, daily_kpi, goals, reviews, export, settings_routes, dashboard):
        app.include_router(module.router, prefix="/api")

    @app.on_event("startup")
    async def _startup():
        if engine is not None:
            await init_db(engine)
        logger.info("Sales KPI API started (project rate basis: %s)", settings.project_rate_basis)

    @app.on_event("shutdown")
    async def _shutdown():
        if engine is not None:
            await engine.dispose()

    @app.exception_handler(StorageError)
    async def _storage_error_handler(request: Request, exc: StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app
