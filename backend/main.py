from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.metrics import router as metrics_router
from api.analytics import router as analytics_router
from api.alerts import router as alerts_router
from api.reports import router as reports_router
from core import logger as log_config
from core.engine import MonitoringEngine
from core.errors import MonitoringError, NotFoundError, ValidationError
from core.settings import MonitoringSettings

API_TITLE = "Metrics Monitoring API"
API_VERSION = "1.0.0"


def create_app(settings: Optional[MonitoringSettings] = None, engine: Optional[MonitoringEngine] = None) -> FastAPI:
    """
    Build the app.

    A caller-supplied engine is used as is and left open on shutdown;
    otherwise the lifespan builds one from settings and closes it.
    """
    settings = settings or (engine.settings if engine else MonitoringSettings())
    log_config.configure(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.engine is None
        if owned:
            app.state.engine = MonitoringEngine.from_settings(settings)
        app.state.engine.start()
        yield
        if owned:
            app.state.engine.close()
            app.state.engine = None
        elif app.state.engine.scheduler.is_running:
            app.state.engine.scheduler.stop()

    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(metrics_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")
    app.include_router(alerts_router, prefix="/api")
    app.include_router(reports_router, prefix="/api")

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.message, **exc.to_dict()})

    @app.exception_handler(ValidationError)
    async def invalid(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.message, **exc.to_dict()})

    @app.exception_handler(MonitoringError)
    async def engine_error(request: Request, exc: MonitoringError):
        return JSONResponse(status_code=500, content={"detail": exc.message, **exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors()), "kind": "validation"})

    @app.get("/")
    async def root():
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        engine = app.state.engine
        stats = engine.stats()

        return {
            "status": "healthy",
            "engine": {
                "samples_recorded": stats["samples_recorded"],
                "metrics": stats["store"]["metrics"],
                "aggregations_performed": stats["aggregations_performed"],
                "uptime_seconds": stats["uptime_seconds"],
            },
            "alerts": {
                "rules": stats["alerts"]["rules_count"],
                "active": stats["alerts"]["active_alerts"],
            },
            "scheduler": {
                "is_running": engine.scheduler.is_running,
            },
            "persistence": {
                "enabled": engine.persistence is not None,
                "failures": stats["persistence"]["failures"] if stats["persistence"] else 0,
            },
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
