"""
FastAPI backend for the Nelson pediatric medical assistant.

Exposes query submission, session context operations, workflow and
safety alert lookups, and knowledge search as JSON endpoints.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from api.dependencies import ServiceContainer, build_services
from api.routes import context, health, knowledge, query, safety, workflows
from nelson.config import Settings
from nelson.store.base import RecordNotFoundError
from nelson.utils.logging import setup_logging

load_dotenv()

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Prebuilt services (tests); built from the environment otherwise
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan - startup and shutdown."""
        settings = Settings.from_env()
        setup_logging(level=settings.log_level, log_file=settings.log_file)
        app.state.services = services or build_services(settings)
        logger.info("Nelson medical assistant API starting")
        yield
        logger.info("API shutting down")
        await app.state.services.close()

    app = FastAPI(
        title="Nelson Pediatric Medical Assistant API",
        description="Query orchestration and diagnostic workflow engine",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS configuration for the chat client
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    @app.exception_handler(RecordNotFoundError)
    async def not_found_handler(request: Request, exc: RecordNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        return _error(422, f"Invalid request: {first.get('msg', 'malformed body')}")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return _error(500, str(exc) or type(exc).__name__)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(query.router, prefix="/api", tags=["Query"])
    app.include_router(context.router, prefix="/api", tags=["Context"])
    app.include_router(workflows.router, prefix="/api", tags=["Workflows"])
    app.include_router(safety.router, prefix="/api", tags=["Safety"])
    app.include_router(knowledge.router, prefix="/api", tags=["Knowledge"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
