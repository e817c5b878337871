import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401
from .database import Base, engine
from .domain.assignments.router import router as assignments_router
from .domain.booking_status.router import router as booking_status_router
from .domain.confirmations.router import public_router as public_confirmations_router
from .domain.confirmations.router import router as confirmations_router
from .domain.conflicts.router import router as conflicts_router
from .errors import SchedulingError, UpstreamError, ValidationError
from .schemas import ActionResult

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Field Scheduling API", version="1.0.0", lifespan=lifespan)


def error_response(error: SchedulingError) -> JSONResponse:
    body = ActionResult(success=False, error=error.message, kind=error.kind)
    return JSONResponse(status_code=error.status_code, content=body.model_dump())


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.kind}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.kind}: {exc.message}")
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed input gets the same envelope as every other failure"""
    errors = exc.errors()
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    messages = []
    for error in errors:
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        messages.append(f"{field}: {message}" if field else message)
    return error_response(ValidationError("; ".join(messages) or "Invalid request"))


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"{request.method} {request.url.path} - Database error: {exc}")
    return error_response(UpstreamError("A database error occurred"))


# CORS Configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(assignments_router)
app.include_router(booking_status_router)
app.include_router(conflicts_router)
app.include_router(confirmations_router)
app.include_router(public_confirmations_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
