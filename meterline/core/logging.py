"""Logging for the Meterline service.

Every log record carries a set of dimensions (request id, organization id,
subscription id, ...) that are attached through ``ContextualLogger``.
Records are rendered by structlog: readable console lines locally and one
JSON object per line elsewhere, so the log pipeline can index the dimensions.

Usage:
    from meterline.core.logging import logger

    log = logger.with_context(subscription_id=str(subscription.id))
    log.info("Usage accepted")
"""

import logging
import sys
from typing import Any, MutableMapping

import structlog
from structlog.types import Processor

from meterline.core.config import settings


def _build_formatter(json_logs: bool) -> structlog.stdlib.ProcessorFormatter:
    """Formatter that lifts ``extra`` dimensions into the rendered event."""
    pre_chain: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        processors: list[Processor] = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ]
    else:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=False),
        ]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain, processors=processors
    )


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter carrying structured dimensions and an optional prefix."""

    def __init__(
        self,
        logger: logging.Logger,
        dimensions: dict[str, Any] | None = None,
        prefix: str = "",
    ) -> None:
        """Wrap a stdlib logger with dimensions."""
        super().__init__(logger, dimensions or {})
        self.dimensions: dict[str, Any] = dict(dimensions or {})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, Any]:
        """Merge dimensions into ``extra`` and apply the prefix."""
        extra = dict(self.dimensions)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"{self.prefix}{msg}", kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with additional dimensions."""
        merged = {**self.dimensions, **{k: v for k, v in dimensions.items() if v is not None}}
        return ContextualLogger(self.logger, merged, self.prefix)

    def with_prefix(self, prefix: str) -> "ContextualLogger":
        """Return a new logger whose messages start with *prefix*."""
        return ContextualLogger(self.logger, self.dimensions, prefix)


def _configure_root_logger() -> logging.Logger:
    base = logging.getLogger("meterline")
    if base.handlers:
        return base

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        _build_formatter(json_logs=not (settings.LOCAL_DEVELOPMENT or settings.TESTING))
    )

    base.addHandler(handler)
    base.setLevel(settings.LOG_LEVEL.upper())
    base.propagate = False
    return base


logger = ContextualLogger(_configure_root_logger())
