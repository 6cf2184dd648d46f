from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import structlog
import time

from app.api import auth, categories, events, search, users
from app.api.deps import get_localizer
from app.core.config import Settings, settings as default_settings
from app.core.database import Database
from app.core.errors import AppError
from app.core.i18n import Localizer
from app.core.security import build_password_context
from app.schemas.common import envelope, error_envelope
from app.services.notifications import Notifier, build_notifier

# Configure structured logging
structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ]
)

logger = structlog.get_logger()

STATUS_MESSAGE_KEYS = {
    400: "validationError",
    401: "unauthorized",
    403: "forbidden",
    404: "notFound",
    409: "alreadyExists",
}


def _validation_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(location) or "request", "message": error.get("msg", "")})
    return errors


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        _ = get_localizer(request)
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=exc.detail or exc.message_key)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(_(exc.message_key, **exc.params), exc.errors)
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        _ = get_localizer(request)
        return JSONResponse(
            status_code=400,
            content=error_envelope(_("validationError"), _validation_errors(exc))
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        _ = get_localizer(request)
        key = STATUS_MESSAGE_KEYS.get(exc.status_code)
        message = _(key) if key else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_envelope(message))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error("unhandled_error", path=request.url.path, error=str(exc))
        _ = get_localizer(request)
        return JSONResponse(status_code=500, content=error_envelope(_("serverError")))


def create_app(settings: Settings | None = None, notifier: Notifier | None = None) -> FastAPI:
    """Build the application with its process-wide components on app.state"""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle events"""
        logger.info("application_startup", app_name=settings.app_name)
        if settings.create_tables:
            await app.state.database.create_all()
        yield
        await app.state.notifier.close()
        await app.state.database.dispose()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.database = Database(
        settings.database_url,
        echo=settings.debug,
        statement_timeout_ms=settings.statement_timeout_ms
    )
    app.state.pwd_context = build_password_context(settings.bcrypt_rounds)
    app.state.notifier = notifier or build_notifier(settings)

    # Middleware for logging requests
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2)
        )

        return response

    register_exception_handlers(app)

    # Include routers
    for module in (auth, users, events, search, categories):
        app.include_router(module.router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "app": settings.app_name}

    @app.get("/")
    async def root(_: Localizer = Depends(get_localizer)):
        """Root endpoint"""
        return envelope(
            {
                "endpoints": {
                    "health": "/health",
                    "auth": f"{settings.api_prefix}/auth",
                    "events": f"{settings.api_prefix}/events",
                    "search": f"{settings.api_prefix}/search/location",
                    "docs": "/docs"
                }
            },
            _("welcome")
        )

    return app


app = create_app()
