"""Trace-pointer codecs and outbound propagation headers."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from opentelemetry.trace import NonRecordingSpan, get_current_span, set_span_in_context
from opentelemetry.trace import SpanContext as OTelSpanContext, TraceFlags
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from tracelink import runtime_config
from tracelink.context.baggage import BAGGAGE_HEADER, Baggage, parse_baggage, serialize_baggage
from tracelink.tracer.span_context import TraceContext, TransactionContext, TransactionSource
from tracelink.utils.helpers import (
    format_span_id,
    format_trace_id,
    get_header,
    has_header,
    is_valid_hex_id,
    parse_span_id,
    parse_trace_id,
)

if TYPE_CHECKING:
    from tracelink.tracer.span import Span

logger = logging.getLogger(__name__)

SENTRY_TRACE_HEADER = "sentry-trace"
TRACEPARENT_HEADER = "traceparent"

SENTRY_TRACE_REGEX = re.compile(
    r"^[ \t]*"
    r"(?P<trace_id>[0-9a-f]{32})"
    r"-(?P<span_id>[0-9a-f]{16})"
    r"(?:-(?P<sampled>[01]))?"
    r"[ \t]*$"
)

# Use OTel's W3C Trace Context propagator
_w3c_propagator = TraceContextTextMapPropagator()


def parse_trace_carrier(header_value: Optional[str]) -> Optional[TraceContext]:
    """
    Parse a ``sentry-trace`` header value.

    Returns None for an absent, empty or malformed value; never raises.
    """
    if not header_value:
        return None

    match = SENTRY_TRACE_REGEX.match(header_value)
    if match is None:
        logger.debug("Ignoring malformed %s header %r", SENTRY_TRACE_HEADER, header_value)
        return None

    trace_id = match.group("trace_id")
    span_id = match.group("span_id")
    if not is_valid_hex_id(trace_id, 32) or not is_valid_hex_id(span_id, 16):
        logger.debug("Ignoring %s header with an all-zero id", SENTRY_TRACE_HEADER)
        return None

    sampled_flag = match.group("sampled")
    sampled = None if sampled_flag is None else sampled_flag == "1"
    return TraceContext(trace_id=trace_id, parent_span_id=span_id, sampled=sampled)


def format_trace_carrier(span: "Span") -> str:
    """Format a ``sentry-trace`` value; the sampled flag is omitted when undecided."""
    value = f"{span.trace_id}-{span.span_id}"
    if span.sampled is not None:
        value += "-1" if span.sampled else "-0"
    return value


def format_traceparent(span: "Span") -> str:
    """
    Format a W3C ``traceparent`` header value for ``span``.

    Uses OpenTelemetry's propagator internally.
    """
    otel_context = OTelSpanContext(
        trace_id=parse_trace_id(span.trace_id),
        span_id=parse_span_id(span.span_id),
        is_remote=False,
        trace_flags=TraceFlags(TraceFlags.SAMPLED if span.sampled else TraceFlags.DEFAULT),
    )
    carrier: Dict[str, str] = {}
    _w3c_propagator.inject(carrier, context=set_span_in_context(NonRecordingSpan(otel_context)))
    return carrier.get(TRACEPARENT_HEADER, "")


def parse_traceparent(header_value: Optional[str]) -> Optional[TraceContext]:
    """
    Parse a W3C ``traceparent`` header value.

    Uses OpenTelemetry's W3C Trace Context parser.
    """
    if not header_value:
        return None

    ctx = _w3c_propagator.extract({TRACEPARENT_HEADER: header_value})
    otel_context = get_current_span(context=ctx).get_span_context()
    if not otel_context.is_valid:
        logger.debug("Ignoring malformed %s header %r", TRACEPARENT_HEADER, header_value)
        return None
    return TraceContext(
        trace_id=format_trace_id(otel_context.trace_id),
        parent_span_id=format_span_id(otel_context.span_id),
        sampled=otel_context.trace_flags.sampled,
    )


def continue_trace(
    headers: Optional[Mapping[str, Any]],
    name: Optional[str] = None,
    op: Optional[str] = None,
    source: TransactionSource = TransactionSource.CUSTOM,
    **kwargs: Any,
) -> TransactionContext:
    """
    Build the context for a transaction that continues the caller's trace.

    The DSC ownership decision is made here, once:

    - incoming ``sentry-`` baggage entries are kept verbatim (third-party
      entries dropped);
    - otherwise, a ``sentry-trace`` key that is present (even empty) means the
      upstream owner chose not to send a DSC, so an empty DSC is frozen;
    - otherwise the DSC is left unset and this process becomes the owner.
    """
    sentry_trace = get_header(headers, SENTRY_TRACE_HEADER)
    trace_context = parse_trace_carrier(sentry_trace)
    baggage = parse_baggage(get_header(headers, BAGGAGE_HEADER))

    if baggage.has_sentry_entries:
        dsc: Optional[Dict[str, str]] = dict(baggage.sentry_entries)
    elif has_header(headers, SENTRY_TRACE_HEADER):
        dsc = {}
    else:
        dsc = None

    context = TransactionContext(name=name, op=op, source=source, dynamic_sampling_context=dsc, **kwargs)
    if trace_context is not None:
        context.trace_id = trace_context.trace_id
        context.parent_span_id = trace_context.parent_span_id
        context.parent_sampled = trace_context.sampled
    return context


def resolve_outbound_headers(span: Optional["Span"] = None) -> Dict[str, str]:
    """
    Return the propagation headers for an outbound request made under ``span``
    (the current active span when omitted).

    ``baggage`` is only present when the trace has a non-empty DSC.
    """
    if span is None:
        from tracelink.context.context import get_current_span as get_active_span
        span = get_active_span()
    if span is None:
        return {}

    headers = {SENTRY_TRACE_HEADER: format_trace_carrier(span)}
    if runtime_config.get_propagate_traceparent():
        headers[TRACEPARENT_HEADER] = format_traceparent(span)

    transaction = span.containing_transaction
    if transaction is not None:
        dsc = transaction.get_dynamic_sampling_context()
        if dsc:
            headers[BAGGAGE_HEADER] = serialize_baggage(Baggage(sentry_entries=dict(dsc)))
    return headers
