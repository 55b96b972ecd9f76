"""Helper functions shared by the codecs and the span tree."""

from __future__ import annotations

import logging
import sys
from typing import Any, Mapping, Optional

_HEX_DIGITS = frozenset("0123456789abcdef")


def format_trace_id(trace_id: int) -> str:
    """
    Format an integer trace id as a hex string.

    Args:
        trace_id: 128-bit trace id

    Returns:
        32-character lowercase hex string
    """
    return format(trace_id, '032x')


def format_span_id(span_id: int) -> str:
    """
    Format an integer span id as a hex string.

    Args:
        span_id: 64-bit span id

    Returns:
        16-character lowercase hex string
    """
    return format(span_id, '016x')


def parse_trace_id(hex_string: str) -> int:
    """
    Parse a hex trace id back to its integer form.

    Args:
        hex_string: 32-character hex string

    Returns:
        trace id as int, 0 when empty
    """
    if not hex_string:
        return 0
    return int(hex_string, 16)


def parse_span_id(hex_string: str) -> int:
    """
    Parse a hex span id back to its integer form.

    Args:
        hex_string: 16-character hex string

    Returns:
        span id as int, 0 when empty
    """
    if not hex_string:
        return 0
    return int(hex_string, 16)


def is_valid_hex_id(value: Optional[str], length: int) -> bool:
    """True for a lowercase hex id of the given length that is not all zeros."""
    if not value or len(value) != length:
        return False
    if not set(value) <= _HEX_DIGITS:
        return False
    return value.strip("0") != ""


def get_duration_ns(start_ns: int, end_ns: Optional[int]) -> Optional[int]:
    """Duration in nanoseconds, or None while the span is still open."""
    if end_ns is None:
        return None
    return end_ns - start_ns


def format_sample_rate(rate: Optional[float]) -> Optional[str]:
    """Render a sample rate the way it travels in baggage (``1`` not ``1.0``)."""
    if rate is None:
        return None
    rate = float(rate)
    if rate.is_integer():
        return str(int(rate))
    return repr(rate)


def get_header(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    """Case-insensitive header lookup. Returns None when the key is absent."""
    if not headers:
        return None
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def has_header(headers: Optional[Mapping[str, Any]], name: str) -> bool:
    """Case-insensitive check for the presence of a header key."""
    if not headers:
        return False
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


def configure_debug_logging(enabled: bool) -> None:
    """Send ``tracelink`` log records to stderr at DEBUG level."""
    logger = logging.getLogger("tracelink")
    if not enabled:
        logger.setLevel(logging.NOTSET)
        return
    logger.setLevel(logging.DEBUG)
    if not any(getattr(h, "_tracelink_debug", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[tracelink] %(levelname)s: %(message)s"))
        handler._tracelink_debug = True
        logger.addHandler(handler)
