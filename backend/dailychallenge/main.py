from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBearer
from dailychallenge.config import settings
from dailychallenge.logging_setup import configure_logging
from dailychallenge.routes.system import router as system_router
from dailychallenge.routes.challenges import router as challenges_router
from dailychallenge.routes.submissions import router as submissions_router
from dailychallenge.routes.points import router as points_router
from dailychallenge.routes.admin import router as admin_router
from dailychallenge.services.events import dispatcher
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version,
             git_sha=settings.git_sha, jobs_mode=settings.jobs_mode)
    yield
    # Shutdown: let in-process reranks/awards finish before the loop goes away
    await dispatcher.drain()
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for daily coding challenges, leaderboards and points"
)

# Add security scheme for Swagger UI
security = HTTPBearer()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(challenges_router)
app.include_router(submissions_router)
app.include_router(points_router)
app.include_router(admin_router)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
