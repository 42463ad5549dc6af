"""FastAPI application for the inventory checkout service.

This is the main entry point for the inventory API server.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import InventoryConfig
from ..error_sanitizer import get_sanitizer
from ..exceptions import ConflictError, InventoryError, NotFoundError, ValidationError
from ..logging_config import setup_logging
from .api.dependencies import close_inventory, init_inventory
from .api.router import router

logger = logging.getLogger(__name__)

# Domain errors are the caller's fault and keep their message
_STATUS_BY_ERROR = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
}


def status_for(exc: InventoryError) -> int:
    """Map an inventory error to its HTTP status code."""
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


def client_message(message: str) -> str:
    """Sanitize a server error message before it is sent to the client."""
    result = get_sanitizer().sanitize(message, "Internal server error")
    if result.was_sanitized:
        logger.warning(
            f"Redacted {result.redaction_count} sensitive item(s) from error response"
        )
    return result.sanitized_message


async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code < 500:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
        detail = exc.message
    else:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        detail = client_message(exc.message)

    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": exc.code},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Log original error internally, never send it to the client
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "detail": client_message(str(exc)),
            "code": "INTERNAL_ERROR",
        },
    )


def create_app(config: Optional[InventoryConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Service configuration; read from the environment if omitted
    """
    if config is None:
        config = InventoryConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Handles startup and shutdown events:
        - Startup: Configure logging, build the store and ledger, seed sample data
        - Shutdown: Release the ledger and close the database pool
        """
        setup_logging(config.log_level)
        logger.info("Starting Inventory Checkout API...")

        try:
            await init_inventory(config)
        except Exception as e:
            logger.error(f"Failed to initialize inventory: {e}")
            raise

        yield

        logger.info("Shutting down Inventory Checkout API...")
        await close_inventory()
        logger.info("Inventory closed")

    app = FastAPI(
        title="Inventory Checkout API",
        description="""
    API for tracking which phone and test device each person has checked out.

    ## Workflow

    1. Register devices and phones
    2. Check out a phone together with a device to a user
    3. Check the pair back in when done
    4. Review open loans and per-asset history
    """,
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    app.add_exception_handler(InventoryError, inventory_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Inventory Checkout API",
            "version": __version__,
            "docs": "/docs",
            "health": "/api/inventory/health",
        }

    @app.get("/health")
    async def health():
        """Global health check."""
        return {"status": "healthy"}

    return app


app = create_app()


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inventory.checkout.app:app",
        host="0.0.0.0",
        port=InventoryConfig.from_env().port,
        reload=True,
    )
