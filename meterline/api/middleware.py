"""Middleware and exception handlers for the FastAPI application.

Domain code raises; the handlers here translate exceptions into HTTP
responses so that no service ever builds a response itself.
"""

import time
import traceback
import uuid

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from meterline.core.config import settings
from meterline.core.exceptions import (
    AuthenticationException,
    BadRequestException,
    MeterlineException,
    NotFoundException,
    PermissionException,
    unpack_validation_error,
)
from meterline.core.logging import logger
from meterline.domains.billing.exceptions import WebhookHandlerError, WebhookSignatureError
from meterline.domains.usage.exceptions import UsageLimitExceededError
from meterline.schemas import LimitExceededDetail


async def add_request_id(request: Request, call_next: callable) -> Response:
    """Middleware to generate and add a request ID to the request for tracing.

    An inbound ``X-Request-ID`` header is honoured so callers can correlate logs.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


async def log_requests(request: Request, call_next: callable) -> Response:
    """Middleware to log incoming requests.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time
    logger.with_context(request_id=getattr(request.state, "request_id", None)).info(
        f"Handled request {request.method} {request.url.path} in {duration:.2f} seconds. "
        f"Response code: {response.status_code}"
    )
    return response


async def exception_logging_middleware(request: Request, call_next: callable) -> Response:
    """Middleware to log unhandled exceptions.

    Args:
    ----
        request (Request): The incoming request.
        call_next (callable): The next middleware in the chain.

    Returns:
    -------
        Response: The response to the incoming request.

    """
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")

        response_content = {"detail": "Internal Server Error"}
        if settings.LOCAL_DEVELOPMENT or settings.DEBUG:
            response_content["detail"] = (
                f"Internal Server Error: {exc.__class__.__name__}: {str(exc)}"
            )
            response_content["trace"] = traceback.format_exc()

        return JSONResponse(status_code=500, content=response_content)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError | ValidationError
) -> JSONResponse:
    """Exception handler for request bodies and parameters that fail schema validation.

    Missing or malformed fields are a client error the caller must fix and
    resend, so they map to 400.

    Example of JSON output:
        {
            "detail": "Invalid request",
            "errors": [
                {"body.quantity": "Input should be greater than or equal to 0"}
            ]
        }

    """
    error_messages = unpack_validation_error(exc)
    logger.warning(f"Validation error on {request.method} {request.url.path}: {error_messages}")
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", **error_messages},
    )


async def authentication_exception_handler(
    request: Request, exc: AuthenticationException
) -> JSONResponse:
    """Exception handler for AuthenticationException.

    Returns:
    -------
        JSONResponse: A 401 Unauthorized status response that details the error message.

    """
    return JSONResponse(status_code=401, content={"detail": str(exc)})


async def permission_exception_handler(request: Request, exc: PermissionException) -> JSONResponse:
    """Exception handler for PermissionException.

    Args:
    ----
        request (Request): The incoming request that triggered the exception.
        exc (PermissionException): The exception object that was raised.

    Returns:
    -------
        JSONResponse: A 403 Forbidden status response that details the error message.

    """
    return JSONResponse(status_code=403, content={"detail": str(exc)})


async def not_found_exception_handler(request: Request, exc: NotFoundException) -> JSONResponse:
    """Exception handler for NotFoundException.

    Returns:
    -------
        JSONResponse: A 404 Not Found status response that details the error message.

    """
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def bad_request_exception_handler(
    request: Request, exc: BadRequestException
) -> JSONResponse:
    """Exception handler for BadRequestException (400)."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def usage_limit_exceeded_exception_handler(
    request: Request, exc: UsageLimitExceededError
) -> JSONResponse:
    """Exception handler for UsageLimitExceededError.

    The body carries the limit state so callers can implement their own
    backoff or upgrade prompts.

    Returns:
    -------
        JSONResponse: A 429 Too Many Requests response ``{error, limits}``.

    """
    decision = exc.decision
    limits = LimitExceededDetail(
        limit=decision.limit,
        current_usage=decision.current_usage,
        requested_quantity=exc.requested_quantity,
        percentage=decision.percentage,
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": str(exc),
            "limits": limits.model_dump(mode="json", by_alias=True),
        },
    )


async def webhook_signature_exception_handler(
    request: Request, exc: WebhookSignatureError
) -> JSONResponse:
    """Exception handler for WebhookSignatureError (400, nothing was persisted)."""
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def webhook_handler_exception_handler(
    request: Request, exc: WebhookHandlerError
) -> JSONResponse:
    """Exception handler for WebhookHandlerError.

    A 500 makes the billing provider redeliver the event.
    """
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "eventId": exc.event_id},
    )


async def meterline_exception_handler(request: Request, exc: MeterlineException) -> JSONResponse:
    """Fallback for MeterlineException subclasses without a dedicated handler."""
    logger.error(f"Unmapped {exc.__class__.__name__}: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})
