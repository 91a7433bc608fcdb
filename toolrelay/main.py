"""FastAPI tool relay main application."""

import signal
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from toolrelay.infra.logging import app_logger
from toolrelay.infra.error_handler import DEFAULT_ERROR_MESSAGE


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    app_logger.info("Application starting up")

    yield

    app_logger.info("Application shutting down")


# Create app with lifespan
app = FastAPI(
    title="Tool Relay API",
    description="""
    Tool Relay lets a language model call external HTTP APIs described by OpenAPI documents.

    ## Features

    - **Tool Turns**: Convert selected OpenAPI documents into model functions, execute the
      calls the model makes and stream the final answer
    - **Health**: Liveness checks and Prometheus metrics
    """,
    version="1.0.0",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Tools",
            "description": "Tool-calling chat turns over OpenAPI tools",
        },
        {
            "name": "Health",
            "description": "Health check and monitoring endpoints",
        },
    ],
)

# Setup middleware
from toolrelay.infra.middleware import RequestIDMiddleware, RequestLoggingMiddleware, setup_cors

# Last added runs first: the request id is bound before requests are logged
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
setup_cors(app)

# Import and register routers
from toolrelay.api.routers import health, tools

app.include_router(tools.router)
app.include_router(health.router)


# Error handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    error_id = str(uuid.uuid4())
    app_logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"error_id": error_id})
    return JSONResponse(
        status_code=500,
        content={"message": f"{DEFAULT_ERROR_MESSAGE}. Error ID: {error_id}"},
    )


if __name__ == "__main__":
    import uvicorn

    # Setup signal handlers for graceful shutdown
    def signal_handler(sig, frame):
        print("\nShutting down gracefully...")
        # Uvicorn handles shutdown automatically

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        timeout_keep_alive=30,
        timeout_graceful_shutdown=30,
    )
