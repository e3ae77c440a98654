import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskboard import __version__
from taskboard.config import Settings
from taskboard.database import build_engine, build_session_factory, init_db, utcnow
from taskboard.errors import AppError, InternalError, ValidationError
from taskboard.logging_setup import configure_logging
from taskboard.routers import auth, notifications, scheduler, tasks, users
from taskboard.services import build_services
from taskboard.services.email_service import EmailOutbox, build_mailer

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Validation failed"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        error = ValidationError(_validation_message(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(settings: Optional[Settings] = None, outbox: Optional[EmailOutbox] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    engine = build_engine(settings.DATABASE_URL)
    init_db(engine)
    session_factory = build_session_factory(engine)
    services = build_services(settings, session_factory, outbox or EmailOutbox(build_mailer(settings)))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.outbox.start()
        if settings.SCHEDULER_ENABLED:
            services.scheduler.start()
        logger.info("Taskboard API started")
        try:
            yield
        finally:
            services.scheduler.stop()
            services.registry.close_all()
            await services.outbox.stop()
            engine.dispose()
            logger.info("Taskboard API stopped")

    app = FastAPI(title="Taskboard API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
    app.include_router(scheduler.router, prefix="/scheduler", tags=["Scheduler"])

    @app.get("/")
    def root():
        return {"message": "Taskboard API", "version": __version__}

    @app.get("/health")
    def health():
        return {"status": "OK", "timestamp": utcnow().isoformat()}

    return app
