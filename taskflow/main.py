"""FastAPI application for the TaskFlow backend."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskflow.config import Settings
from taskflow.dependencies import get_storage
from taskflow.errors import TaskflowError, Unavailable
from taskflow.reminders import Mailer, ReminderScheduler, SmtpMailer
from taskflow.routes.auth import router as auth_router
from taskflow.routes.reminders import router as reminders_router
from taskflow.routes.tasks import router as tasks_router
from taskflow.storage import Storage, build_storage

logger = logging.getLogger(__name__)


def _start_scheduler(app: FastAPI) -> Optional[asyncio.Task]:
    settings: Settings = app.state.settings
    if not settings.reminders_enabled:
        return None
    if app.state.mailer is None:
        logger.warning("Reminders enabled but EMAIL_USER/EMAIL_PASS not set; scheduler not started")
        return None
    scheduler = ReminderScheduler(app.state.storage, app.state.mailer, at=settings.reminder_time)
    return asyncio.create_task(scheduler.run_forever())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open storage and start the daily reminder loop; stop it on shutdown."""
    if app.state.storage is None:
        app.state.storage = build_storage(app.state.settings)
    scheduler_task = _start_scheduler(app)
    yield
    if scheduler_task is not None:
        scheduler_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await scheduler_task


async def taskflow_error_handler(request: Request, exc: TaskflowError) -> JSONResponse:
    if isinstance(exc, Unavailable):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse({"error": "Internal server error"}, status_code=exc.status_code)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    return JSONResponse({"error": "Invalid input", "fields": fields}, status_code=400)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[Storage] = None,
    mailer: Optional[Mailer] = None,
) -> FastAPI:
    """Build the app. A ``storage`` passed in is used instead of opening one."""
    settings = settings or Settings.from_env()
    if mailer is None and settings.mail_configured:
        mailer = SmtpMailer.from_settings(settings)

    app = FastAPI(title="TaskFlow", lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage
    app.state.mailer = mailer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(TaskflowError, taskflow_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth_router)
    app.include_router(tasks_router)
    app.include_router(reminders_router)

    @app.get("/health")
    def health_check(storage: Storage = Depends(get_storage)):
        """Report storage reachability."""
        try:
            db = storage.ping()
        except Unavailable:
            return JSONResponse({"status": "down"}, status_code=503)
        return {"status": "ok", "db": db}

    return app


app = create_app()
