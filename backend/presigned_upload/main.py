"""
FastAPI application entry point.
Sets up the API with lifespan events for database and storage initialization.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from presigned_upload import __version__
from presigned_upload.config import settings
from presigned_upload.database import AsyncSessionLocal, engine, init_db
from presigned_upload.api.router import api_router
from presigned_upload.dependencies import build_upload_service
from presigned_upload.middleware.metrics_middleware import MetricsMiddleware
from presigned_upload.storage.s3_client import build_s3_client
from presigned_upload.utils.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: configure logging, create tables, build the shared
      storage client and upload service
    - Shutdown: dispose the database engine
    """
    configure_logging('upload-api', settings.log_level)

    await init_db()

    s3_client = build_s3_client(settings)
    app.state.upload_service = build_upload_service(settings, s3_client, AsyncSessionLocal)

    yield

    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title="Presigned Upload API",
    description="Direct-to-storage image uploads with server-side confirmation",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)

app.include_router(api_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are client errors: answer 400, not 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Invalid request format", "details": jsonable_errors(exc)}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Presigned Upload API",
        "version": __version__,
        "environment": settings.environment
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
