import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hod_appointments.api.routes import appointments, auth
from hod_appointments.core.config import _ENV_FILE, settings
from hod_appointments.core.db import init_db
from hod_appointments.core.errors import AppointmentError, AuthenticationError

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info(
        "Office hours %02d:00-%02d:00, status transition policy: %s",
        settings.business_start_hour,
        settings.business_end_hour,
        settings.status_transition_policy,
    )
    if not settings.hod_email:
        logger.warning("HOD_EMAIL not set: no account will receive the department head role")
    if settings.auto_create_tables:
        await init_db()
    yield


app = FastAPI(
    title="HOD Appointments API",
    description="Students request meetings with the department head; the HOD reviews them",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(auth.router, prefix="/api")
app.include_router(appointments.router, prefix="/api")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(AppointmentError)
async def appointment_error_handler(request: Request, exc: AppointmentError) -> JSONResponse:
    headers = _cors_headers(request.headers.get("origin"))
    if isinstance(exc, AuthenticationError):
        headers["WWW-Authenticate"] = "Bearer"
    if exc.retryable:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": exc.kind, "retryable": exc.retryable},
        headers=headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}
