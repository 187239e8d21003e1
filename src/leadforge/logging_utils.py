# logging_utils.py
"""Logging setup for LeadForge.

Records are written to stdout either as one JSON object per line (deployed
environments) or as coloured text (``APP_ENV=dev``). Build context such as
``task_id``, ``business_id`` and ``agent_type`` can be attached to every
record emitted inside a ``LogContext`` block, or to every record of a
``ContextAdapter``.
"""

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE_NAME = "leadforge"

# Fields shown at the end of human-readable lines, in this order
CONTEXT_FIELDS = ("task_id", "business_id", "agent_type")

# HTTP client loggers that only get through at DEBUG
QUIET_LOGGERS = ("urllib3", "requests", "asyncio")

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "taskName"}

_build_context: contextvars.ContextVar = contextvars.ContextVar("leadforge_log_context", default={})


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Non-standard attributes of a record, made JSON-safe."""
    extras: Dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _RESERVED or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)
        extras[key] = value
    return extras


class StructuredFormatter(logging.Formatter):
    """Render each record as a single JSON document."""

    def __init__(
        self,
        service_name: str = SERVICE_NAME,
        include_timestamp: bool = True,
        include_extra: bool = True,
    ):
        super().__init__()
        self.service_name = service_name
        self.include_timestamp = include_timestamp
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "service": self.service_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            },
        }
        if self.include_timestamp:
            entry["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if self.include_extra:
            extras = _record_extras(record)
            if extras:
                entry["extra"] = extras
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Console formatter for local development.

    Lines look like ``[2025-01-01 12:00:00] INFO     [leadforge.tasks] Paused (task_id=1712)``.
    """

    LEVEL_COLORS = {
        "DEBUG": "36",
        "INFO": "32",
        "WARNING": "33",
        "ERROR": "31",
        "CRITICAL": "35",
    }

    def __init__(self, use_colors: bool = True, show_context: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()
        self.show_context = show_context

    def _level(self, levelname: str) -> str:
        padded = f"{levelname:8}"
        if not self.use_colors or levelname not in self.LEVEL_COLORS:
            return padded
        return f"\033[{self.LEVEL_COLORS[levelname]}m{padded}\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"[{when}] {self._level(record.levelname)} [{record.name}] {record.getMessage()}"

        if self.show_context:
            pairs = [f"{name}={getattr(record, name)}" for name in CONTEXT_FIELDS if hasattr(record, name)]
            if pairs:
                line += f" ({' '.join(pairs)})"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class BuildContextFilter(logging.Filter):
    """Copy the active LogContext fields onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _build_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logging(
    level: Optional[str] = None,
    structured: Optional[bool] = None,
    service_name: str = SERVICE_NAME,
) -> logging.Logger:
    """Configure the root logger with a single stdout handler.

    Calling it again replaces the previous handler.

    Args:
        level: Level name; ``LOG_LEVEL`` or INFO when omitted.
        structured: JSON output; defaults to ``APP_ENV != "dev"``.
        service_name: Value of the ``service`` field in JSON output.

    Returns:
        The ``leadforge`` package logger.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    if structured is None:
        structured = os.environ.get("APP_ENV", "dev") != "dev"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(BuildContextFilter())
    if structured:
        handler.setFormatter(StructuredFormatter(service_name=service_name))
    else:
        handler.setFormatter(HumanReadableFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    quiet_level = log_level if log_level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    package_logger = logging.getLogger(SERVICE_NAME)
    package_logger.debug(
        "Logging configured",
        extra={"log_level": level_name, "structured": structured},
    )
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``leadforge`` namespace; ``tasks`` becomes ``leadforge.tasks``."""
    if name.startswith(SERVICE_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{SERVICE_NAME}.{name}")


class LogContext:
    """Attach fields to every record logged inside the block.

    Contexts nest; leaving a block restores the outer fields. The fields
    follow asyncio tasks created inside the block.

    Example:
        >>> with LogContext(business_id="b-1", agent_type="website"):
        ...     await tracker.start(business, "website")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "LogContext":
        self._token = _build_context.set({**_build_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _build_context.reset(self._token)
            self._token = None

    @staticmethod
    def get_context() -> Dict[str, Any]:
        """Fields of the innermost active block."""
        return dict(_build_context.get())


class ContextAdapter(logging.LoggerAdapter):
    """Logger adapter for one background build.

    Record fields come from, in increasing priority: the adapter's own
    extras, the active LogContext, and the ``extra`` of the call.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {
            **(self.extra or {}),
            **LogContext.get_context(),
            **kwargs.get("extra", {}),
        }
        return msg, kwargs
