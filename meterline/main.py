"""Main module of the FastAPI application.

This module sets up the FastAPI application, the middleware that tags and logs
requests, and the exception handlers that translate domain errors to HTTP.
"""

import os
import subprocess
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from meterline.api.middleware import (
    add_request_id,
    authentication_exception_handler,
    bad_request_exception_handler,
    exception_logging_middleware,
    log_requests,
    meterline_exception_handler,
    not_found_exception_handler,
    permission_exception_handler,
    usage_limit_exceeded_exception_handler,
    validation_exception_handler,
    webhook_handler_exception_handler,
    webhook_signature_exception_handler,
)
from meterline.api.v1.api import api_router
from meterline.core.config import settings
from meterline.core.exceptions import (
    AuthenticationException,
    BadRequestException,
    MeterlineException,
    NotFoundException,
    PermissionException,
)
from meterline.core.logging import logger
from meterline.domains.billing.exceptions import WebhookHandlerError, WebhookSignatureError
from meterline.domains.usage.exceptions import UsageLimitExceededError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events.

    Initializes the DI container and, when enabled, runs alembic migrations.
    """
    # Initialize the dependency injection container (fail fast if wiring is broken)
    from meterline.core.container import initialize_container

    logger.info("Initializing dependency injection container...")
    initialize_container(settings)
    logger.info("Container initialized successfully")

    if settings.RUN_ALEMBIC_MIGRATIONS:
        logger.info("Running alembic migrations...")
        env = os.environ.copy()
        project_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        env["PYTHONPATH"] = project_dir
        subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", "head"],
            check=True,
            cwd=project_dir,
            env=env,
        )

    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.include_router(api_router)

# Order matters: the last registered middleware is the outermost
app.middleware("http")(add_request_id)
app.middleware("http")(log_requests)
app.middleware("http")(exception_logging_middleware)

# Register exception handlers
app.exception_handler(RequestValidationError)(validation_exception_handler)
app.exception_handler(ValidationError)(validation_exception_handler)
app.exception_handler(AuthenticationException)(authentication_exception_handler)
app.exception_handler(PermissionException)(permission_exception_handler)
app.exception_handler(NotFoundException)(not_found_exception_handler)
app.exception_handler(BadRequestException)(bad_request_exception_handler)
app.exception_handler(UsageLimitExceededError)(usage_limit_exceeded_exception_handler)
app.exception_handler(WebhookSignatureError)(webhook_signature_exception_handler)
app.exception_handler(WebhookHandlerError)(webhook_handler_exception_handler)

# Fallback for the remaining Meterline exceptions
app.exception_handler(MeterlineException)(meterline_exception_handler)
