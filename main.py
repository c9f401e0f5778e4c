import logging
import time
import traceback
import uuid
from typing import Optional

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi import HTTPException as FastAPIHTTPException
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.starlette import StarletteIntegration
from sqlalchemy.exc import SQLAlchemyError
from starlette.responses import PlainTextResponse, RedirectResponse

from db import get_db
from dragonhub.api import auth, event_plans, misc
from dragonhub.core.logging_utils import configure_logging
from dragonhub.core.settings import settings
from dragonhub.models import AppErrorLog
from dragonhub.services.auth import get_user_id_from_request
from dragonhub.services.errors import EventPlanError
from dragonhub.services.school_context import SCHOOL_COOKIE

load_dotenv()


app = FastAPI(title="Dragon Hub")

# Configure logging (console + rotating file; JSON by default)
configure_logging(settings)
logger = logging.getLogger("app")

# Initialize Sentry if DSN provided
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[StarletteIntegration()],
        traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0.0),
        send_default_pii=False,
    )

app.include_router(misc.router)
app.include_router(auth.router)
app.include_router(event_plans.router)


def _school_id_from_cookie(request: Request) -> Optional[int]:
    raw = request.cookies.get(SCHOOL_COOKIE)
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


def _record_error(
    request: Request,
    status: int,
    message: str,
    error_type: Optional[str] = None,
    stack: Optional[str] = None,
) -> None:
    """Best-effort write of a failed request to AppErrorLog."""
    request_id = getattr(request.state, "request_id", None)
    db_gen = get_db()
    db = next(db_gen)
    try:
        user_id = None
        if status != 404:
            user_id = get_user_id_from_request(request, db)
        db.add(
            AppErrorLog(
                RequestID=str(request_id) if request_id else None,
                Method=request.method,
                Path=str(request.url.path),
                StatusCode=int(status),
                ErrorType=error_type,
                UserID=user_id,
                SchoolID=_school_id_from_cookie(request),
                ClientIP=request.client.host if request.client else None,
                UserAgent=(request.headers.get("user-agent") or "")[:255] or None,
                Message=message,
                StackTrace=stack,
            )
        )
        db.commit()
    except SQLAlchemyError:
        # Never mask the original error with a logging failure
        db.rollback()
        logger.exception("error_log.write_failed", extra={"request_id": request_id})
    finally:
        db_gen.close()


def _json_error(request: Request, status: int, detail) -> JSONResponse:
    resp = JSONResponse({"detail": detail}, status_code=status)
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        resp.headers["X-Request-ID"] = str(request_id)
    return resp


# Request logging middleware with request id and user/session context
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    start = time.perf_counter()
    # Stash request_id for downstream handlers
    request.state.request_id = request_id
    extra_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
    logger.info("request.start", extra=extra_ctx)
    try:
        response = await call_next(request)
    except Exception:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.exception("request.error", extra={**extra_ctx, "duration_ms": duration_ms})
        # Re-raise to be handled by 500 handler
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request.end",
        extra={**extra_ctx, "status_code": response.status_code, "duration_ms": duration_ms},
    )
    return response


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    _record_error(request, 404, "Not Found")
    detail = getattr(exc, "detail", None) or "Not Found"
    return _json_error(request, 404, detail)


@app.exception_handler(EventPlanError)
async def event_plan_error_handler(request: Request, exc: EventPlanError):
    """Map workflow errors (validation, auth, not found, invalid state) to JSON responses."""
    logger.info(
        "event_plan.rejected",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "path": request.url.path,
            "error": type(exc).__name__,
            "detail": exc.message,
        },
    )
    if exc.status_code != 404:
        _record_error(request, exc.status_code, exc.message, type(exc).__name__)
    return _json_error(request, exc.status_code, exc.message)


@app.exception_handler(FastAPIHTTPException)
async def http_exception_handler(request: Request, exc: FastAPIHTTPException):
    """Log HTTPException (>=400) to DB, then return a JSON response.

    Note: 404 has a dedicated handler above which also logs to DB.
    """
    status = getattr(exc, "status_code", 500) or 500
    # If this is a redirect (302/303/etc) and a Location header is present,
    # return a RedirectResponse so browsers perform a proper HTML redirect
    if status in (301, 302, 303, 307, 308):
        loc = (exc.headers or {}).get("Location")
        if loc:
            return RedirectResponse(url=loc, status_code=status)
    if status == 404:
        return await not_found_handler(request, exc)
    if status >= 400:
        _record_error(request, status, str(exc.detail), "HTTPException")
    return _json_error(request, status, exc.detail)


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    request_id = getattr(request.state, "request_id", None)
    try:
        _record_error(
            request,
            500,
            str(exc),
            type(exc).__name__,
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
    except Exception:
        logger.exception("error_log.write_failed", extra={"request_id": request_id})
        return PlainTextResponse("Internal Server Error", status_code=500)
    return _json_error(request, 500, "Internal Server Error")
