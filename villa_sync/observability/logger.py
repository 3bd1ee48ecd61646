# villa_sync/observability/logger.py

# structured JSON logger
import logging
import sys
from typing import Optional

from opentelemetry import trace
from pythonjsonlogger import jsonlogger


class TraceIdFilter(logging.Filter):
    """Inject trace_id into the record if a span is active."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            ctx = trace.get_current_span().get_span_context()
            if ctx and ctx.trace_id:
                record.trace_id = f"{ctx.trace_id:032x}"
        return True


def _build_formatter() -> logging.Formatter:
    return jsonlogger.JsonFormatter(
        fmt=(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(pathname)s %(lineno)d %(trace_id)s"
        ),
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def configure_logging(config_module=None, level: Optional[str] = None) -> None:
    """Configure root logging with a JSON console handler.

    - Level comes from ``level`` or ``config_module.LOG_LEVEL`` (INFO otherwise).
    - Adds a single JSON stdout handler; calling twice does not duplicate it.
    - Injects trace_id when a span is active.
    """
    root = logging.getLogger()
    level = level or getattr(config_module, "LOG_LEVEL", None) or "INFO"
    root.setLevel(level)

    formatter = _build_formatter()
    trace_filter = TraceIdFilter()

    have_console = any(getattr(h, "_villa_sync_console", False) for h in root.handlers)
    if not have_console:
        console = logging.StreamHandler(stream=sys.stdout)
        console.setLevel(level)
        console.setFormatter(formatter)
        console.addFilter(trace_filter)
        console._villa_sync_console = True  # type: ignore[attr-defined]
        root.addHandler(console)

    # httpx logs every request at INFO; poll loops would flood the output.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger("startup").info("logging configured", extra={})
