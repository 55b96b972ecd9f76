"""Utility functions for tracelink."""

from tracelink.utils.helpers import (
    configure_debug_logging,
    format_sample_rate,
    format_span_id,
    format_trace_id,
    get_duration_ns,
    get_header,
    has_header,
    is_valid_hex_id,
    parse_span_id,
    parse_trace_id,
)

__all__ = [
    "configure_debug_logging",
    "format_sample_rate",
    "format_span_id",
    "format_trace_id",
    "get_duration_ns",
    "get_header",
    "has_header",
    "is_valid_hex_id",
    "parse_span_id",
    "parse_trace_id",
]
