from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import traceback
import uuid

from drumforge.core.logging import get_logger


class BillingError(Exception):
    """Base for billing failures that map onto an HTTP status."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BillingNotConfigured(BillingError):
    status_code = 503

    def __init__(self, message: str = "Stripe is not configured"):
        super().__init__(message)


class TierNotPriced(BillingError):
    def __init__(self, message: str = "Tier not available"):
        super().__init__(message)


class NoBillingCustomer(BillingError):
    def __init__(self, message: str = "No subscription found"):
        super().__init__(message)


class BillingProviderError(BillingError):
    status_code = 502


def error_payload(code: str, message: str, details=None, request: Request | None = None, error_id: str | None = None):
    """Create the error envelope shared by all handlers."""
    USER_FRIENDLY_MESSAGES = {
        "internal_error": "We're experiencing technical difficulties. Please try again in a moment.",
        "validation_error": "Please check your input and try again.",
        "http_error": message,
    }
    user_message = USER_FRIENDLY_MESSAGES.get(code, message)

    out = {
        "error": {
            "code": code,
            "message": user_message,
            "technical_message": message if user_message != message else None,
            "details": details,
            "retryable": code == "internal_error",
        }
    }

    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        out["error"]["request_id"] = rid
    if error_id:
        out["error"]["error_id"] = error_id
    return out


def _validation_details(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances, which are not JSON serializable
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def install_exception_handlers(app):
    log = get_logger("drumforge.exceptions")

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):
        log.warning(
            "HTTPException %s %s -> %s: %s",
            request.method, request.url.path, exc.status_code, exc.detail,
        )
        return JSONResponse(
            error_payload("http_error", exc.detail, {"status_code": exc.status_code}, request),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        details = _validation_details(exc)
        log.info("ValidationError %s %s: %s", request.method, request.url.path, details)
        return JSONResponse(
            error_payload("validation_error", "Validation failed", details, request),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):
        err_id = str(uuid.uuid4())
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        log.error(
            "Unhandled exception [%s] %s %s\nTraceback:\n%s",
            err_id, request.method, request.url.path, tb,
        )
        return JSONResponse(
            error_payload("internal_error", "Something went wrong", None, request, error_id=err_id),
            status_code=500,
        )
