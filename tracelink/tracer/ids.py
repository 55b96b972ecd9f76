"""Trace and span identifier generation."""

from __future__ import annotations

from opentelemetry.sdk.trace.id_generator import RandomIdGenerator

from tracelink.utils.helpers import format_span_id, format_trace_id

# RandomIdGenerator re-draws on the reserved all-zero id.
_id_generator = RandomIdGenerator()


def new_trace_id() -> str:
    """Return a fresh 32-character hex trace id."""
    return format_trace_id(_id_generator.generate_trace_id())


def new_span_id() -> str:
    """Return a fresh 16-character hex span id."""
    return format_span_id(_id_generator.generate_span_id())
