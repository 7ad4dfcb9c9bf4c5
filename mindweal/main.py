import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .database import Database
from .domain.scheduling.router import router as scheduling_router
from .domain.therapists.router import admin_router as admin_therapists_router
from .domain.therapists.router import public_router as public_therapists_router
from .domain.therapists.router import router as therapist_portal_router
from .exceptions import SchedulingError

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
    database: Database = app.state.database
    database.open()
    try:
        database.create_all()
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    yield

    logger.info("Application shutting down...")
    database.close()


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API. Tests pass their own Database; production uses DATABASE_URL."""
    app = FastAPI(title=f"{config.APP_NAME} Scheduling API", version="1.0.0", lifespan=lifespan)
    app.state.database = database or Database()

    @app.exception_handler(SchedulingError)
    async def scheduling_exception_handler(request: Request, exc: SchedulingError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} - {exc.code}: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} - {exc.status_code} {exc.code}")
        content = {"detail": exc.message, "code": exc.code}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Keep FastAPI's 422 shape, but log which fields failed"""
        fields = [".".join(str(p) for p in error.get("loc", [])) for error in exc.errors()]
        logger.warning(f"Validation failed for {request.url.path}: {fields}")
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_encoder(exc.errors()), "code": "request_validation_error"},
        )

    # CORS Configuration
    logger.info(f"CORS allowed origins: {config.CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    # Routes
    app.include_router(scheduling_router)
    app.include_router(public_therapists_router)
    app.include_router(therapist_portal_router)
    app.include_router(admin_therapists_router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
