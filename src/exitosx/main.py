"""Exit OSx FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from exitosx.config import settings
from exitosx.errors import ExitOSxError

# ── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.DEBUG if settings.exitosx_debug else logging.INFO,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)
# Quiet down noisy third-party loggers
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("LiteLLM").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    from exitosx.db.session import init_db
    from exitosx.tasks.workers import start_scheduler

    await init_db()
    start_scheduler()

    yield

    from exitosx.db.session import close_db
    from exitosx.tasks.workers import stop_scheduler

    stop_scheduler()
    await close_db()


app = FastAPI(
    title="Exit OSx",
    description="Exit readiness scoring, valuation and deal room platform",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error handling ────────────────────────────────────────────────────────────


@app.exception_handler(ExitOSxError)
async def exitosx_error_handler(request: Request, exc: ExitOSxError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=409,
        content={"detail": "Resource already exists or conflicts with existing data", "code": "CONFLICT"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error", "code": "INTERNAL_ERROR"}
    if settings.exitosx_env == "development":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# Register API routes
from exitosx.api.routes import auth, companies, financials, industries, valuation  # noqa: E402
from exitosx.api.routes import assessments, project_assessments, tasks  # noqa: E402
from exitosx.api.routes import dashboard, deals, drift, integrations, signals  # noqa: E402

app.include_router(auth.router, prefix="/api", tags=["Auth"])
app.include_router(companies.router, prefix="/api", tags=["Companies"])
app.include_router(financials.router, prefix="/api", tags=["Financials"])
app.include_router(valuation.router, prefix="/api", tags=["Valuation"])
app.include_router(industries.router, prefix="/api", tags=["Industries"])
app.include_router(assessments.router, prefix="/api", tags=["Assessments"])
app.include_router(project_assessments.router, prefix="/api", tags=["Project Assessments"])
app.include_router(tasks.router, prefix="/api", tags=["Tasks"])
app.include_router(signals.router, prefix="/api", tags=["Signals"])
app.include_router(drift.router, prefix="/api", tags=["Drift"])
app.include_router(deals.router, prefix="/api", tags=["Deals"])
app.include_router(integrations.router, prefix="/api", tags=["Integrations"])
app.include_router(dashboard.router, prefix="/api", tags=["Dashboard"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": "0.1.0", "env": settings.exitosx_env}
