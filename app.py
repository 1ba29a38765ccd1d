"""Main FastAPI application entry point for TaskFlow AI."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import settings
from config.database import database
from api.routers.auth import router as auth_router
from api.routers.tasks import router as tasks_router
from api.routers.suggestions import router as suggestions_router
from services.errors import StorageFailure, describe_validation_errors
from services.factory import backends

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    await backends.start()
    logger.info(f"Storage backend ready: {settings.STORAGE_MODE}")
    yield
    await backends.stop()
    logger.info("Backends stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Personal task manager with AI-assisted planning",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(suggestions_router)


# Registration reports every rejected input as a 400 with a readable detail.
BAD_REQUEST_PATHS = {"/api/auth/register"}


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    if request.url.path in BAD_REQUEST_PATHS:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": describe_validation_errors(exc.errors())}
        )
    return await request_validation_exception_handler(request, exc)


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)}
    )


@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    if settings.STORAGE_MODE != "mongo":
        return {"status": "healthy", "storage": settings.STORAGE_MODE}

    db_healthy = await database.health_check()
    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "storage": settings.STORAGE_MODE,
        "database": "connected" if db_healthy else "disconnected"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
