"""Span processor that logs spans when they end."""

from __future__ import annotations

import logging
from typing import Optional

from tracelink.tracer.processor import SpanProcessor


class LoggingSpanProcessor(SpanProcessor):
    """Logs a span summary on finish using the standard logging module."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("tracelink.spans")

    def on_end(self, span) -> None:
        status = span.status.value if span.status else "unset"
        msg = (
            f"[span] op={span.op} description={span.description} trace_id={span.trace_id} "
            f"span_id={span.span_id} parent_span_id={span.parent_span_id} status={status} "
            f"duration_ns={span.duration_ns}"
        )
        if span.tags:
            msg += f" tags={span.tags}"
        self.logger.info(msg)

    def shutdown(self) -> None:
        return None

    def force_flush(self, timeout: Optional[float] = None) -> None:
        return None
