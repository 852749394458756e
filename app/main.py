"""
FastAPI application entry point.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.db import async_session_maker, close_db, init_db
from app.errors import AppError, ConfigurationError
from app.services.broadcast import BroadcastCoordinator
from app.services.credentials import TokenHasher
from app.services.push import PushDeliveryService
from app.services.session_auth import SessionAuthenticator
from app.services.subscription_store import SubscriptionStore
from app.settings import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def install_services(app: FastAPI, store: SubscriptionStore) -> None:
    """Build the subscription and push services and attach them to app.state.

    Missing VAPID keys abort startup unless REQUIRE_PUSH_KEYS is false, in
    which case push endpoints answer 500 until keys are configured.
    """
    app.state.store = store
    app.state.authenticator = SessionAuthenticator(store, TokenHasher(rounds=settings.token_hash_rounds))

    try:
        push_service = PushDeliveryService.from_settings(settings, store)
    except ConfigurationError:
        if settings.require_push_keys:
            raise
        logger.warning("Push notifications disabled - VAPID keys not configured")
        app.state.push_service = None
        app.state.broadcaster = None
        return

    app.state.push_service = push_service
    app.state.broadcaster = BroadcastCoordinator(
        store, push_service, max_concurrency=settings.broadcast_max_concurrency,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting %s...", settings.app_name)
    install_services(app, SubscriptionStore(async_session_maker))
    await init_db()
    yield
    logger.info("Shutting down %s...", settings.app_name)
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID to all requests for logging."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health", tags=["health"])
    async def health():
        """Health check endpoint for load balancers."""
        return {"status": "healthy"}

    from app.routers import push, subscriptions

    app.include_router(subscriptions.router)
    app.include_router(push.router)

    register_exception_handlers(app)
    return app


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request data on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "message": "Invalid request data",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        else:
            logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)

        content = {"success": False, "message": exc.response_message}
        if exc.status_code == status.HTTP_400_BAD_REQUEST and exc.details:
            content["errors"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Internal server error"},
        )


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
