import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import models so they're registered with SQLAlchemy Base before create_all
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.scheduling import router as scheduling_router
from .domain.scheduling.errors import (
    STORE_FAILURE_MESSAGE,
    ConstraintViolation,
    RecordNotFound,
    SchedulingConflict,
    SchedulingValidationError,
    StoreUnavailable,
)

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
    except Exception as e:
        # Another worker may have created the tables between check and create
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Practice Scheduling API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Report malformed request bodies and query parameters as 400 with the
    first actionable message instead of FastAPI's default 422
    """
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
        message = first.get("msg", message).removeprefix("Value error, ")
        if field:
            message = f"{field}: {message}"
    logger.warning(f"Rejected {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"detail": message, "errors": jsonable_errors(errors)})


def jsonable_errors(errors) -> list[dict]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors]


@app.exception_handler(SchedulingConflict)
async def scheduling_conflict_handler(request: Request, exc: SchedulingConflict):
    return JSONResponse(
        status_code=409,
        content={"detail": exc.message, "conflicting_ids": exc.conflicting_ids},
    )


@app.exception_handler(SchedulingValidationError)
async def scheduling_validation_handler(request: Request, exc: SchedulingValidationError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(RecordNotFound)
async def not_found_handler(request: Request, exc: RecordNotFound):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(ConstraintViolation)
async def constraint_violation_handler(request: Request, exc: ConstraintViolation):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"{request.method} {request.url.path} - Store unavailable: {exc.message}")
    return JSONResponse(status_code=503, content={"detail": STORE_FAILURE_MESSAGE})


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

app.include_router(scheduling_router)


@app.get("/")
def root():
    return {"message": "Practice Scheduling API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
