"""
Gasless Arcade Backend
FastAPI server hosting the x402 paywall and game endpoints
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from arcade.config import ArcadeConfig, get_arcade_config
from arcade.log import configure_logging
from arcade.server.dependencies import ArcadeServices, build_services, limiter
from arcade.server.routers import game, general, paywall
from arcade.server.tasks import run_maintenance_tasks

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the FastAPI app"""
    services: ArcadeServices = app.state.services
    config = services.config
    configure_logging(config.log_level, config.log_format)
    logger.info(
        "arcade_starting",
        host=config.arcade_host,
        port=config.arcade_port,
        network=config.network,
        free_play_limit=config.free_play_limit,
        strict_verification=config.strict_payment_verification,
    )

    maintenance = asyncio.create_task(
        run_maintenance_tasks(services.invoices, config.invoice_sweep_interval_seconds)
    )
    try:
        yield
    finally:
        maintenance.cancel()
        try:
            await maintenance
        except asyncio.CancelledError:
            pass
        logger.info("arcade_shutting_down")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        location = ".".join(str(p) for p in errors[0].get("loc", ()) if p != "body")
        message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def create_app(
    config: Optional[ArcadeConfig] = None,
    services: Optional[ArcadeServices] = None,
) -> FastAPI:
    """Build the FastAPI application with its own service instances"""
    config = config or get_arcade_config()
    services = services or build_services(config)

    app = FastAPI(
        title="Gasless Arcade",
        description="Pay-per-play arcade backend using the x402 protocol",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Payment-Required", "X-Invoice-Id"],
    )

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(general.router)
    app.include_router(paywall.router)
    app.include_router(game.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    config = get_arcade_config()

    uvicorn.run(
        "arcade.server.app:app",
        host=config.arcade_host,
        port=config.arcade_port,
        reload=config.reload,
        log_level=config.log_level.lower()
    )
