from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import structlog
import time
import uuid
from app.api.routes import api_router
from app.config.settings import settings
from app.core.database import create_tables
from app.core.exceptions import AppError


def configure_logging(level: str, debug: bool = False) -> None:
    """Route structlog through stdlib logging: JSON lines, or console output in debug"""
    logging.basicConfig(format="%(message)s", level=level.upper())
    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


configure_logging(settings.log_level, settings.debug)
logger = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""

    app = FastAPI(
        title="Chunked Test Case Generator API",
        description="Resumable chunk-by-chunk AI test case generation with near-duplicate reconciliation",
        version="1.0.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware; every log line of a request carries its request_id
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None
        )

        response = await call_next(request)
        response.headers["x-request-id"] = request_id

        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time=time.time() - start_time
        )

        return response

    # Domain errors that a route did not translate itself
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.warning(
            "Application error",
            method=request.method,
            path=request.url.path,
            code=exc.code,
            error=exc.message
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": exc.message,
                "code": exc.code
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            method=request.method,
            path=request.url.path,
            error=str(exc),
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "timestamp": time.time()
            }
        )

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Application starting up", environment=settings.environment, ai_provider=settings.ai_provider)
        try:
            create_tables()
            logger.info("Database initialization completed")
        except Exception as e:
            logger.error("Failed to initialize database", error=str(e))
            raise

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Application shutting down")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
