"""Context utilities: scopes, hubs and header propagation."""

from tracelink.context.baggage import (
    BAGGAGE_HEADER,
    Baggage,
    merge_outgoing_baggage,
    parse_baggage,
    serialize_baggage,
)
from tracelink.context.context import (
    get_current_span,
    isolation_scope,
    pop_scope,
    pop_span,
    push_scope,
    push_span,
    with_scope,
)
from tracelink.context.hub import Hub, ScopeHandle, get_current_hub, get_main_hub
from tracelink.context.propagators import (
    SENTRY_TRACE_HEADER,
    TRACEPARENT_HEADER,
    continue_trace,
    format_trace_carrier,
    format_traceparent,
    parse_trace_carrier,
    parse_traceparent,
    resolve_outbound_headers,
)
from tracelink.context.scope import Scope

__all__ = [
    "BAGGAGE_HEADER",
    "SENTRY_TRACE_HEADER",
    "TRACEPARENT_HEADER",
    "Baggage",
    "Hub",
    "Scope",
    "ScopeHandle",
    "continue_trace",
    "format_trace_carrier",
    "format_traceparent",
    "get_current_hub",
    "get_current_span",
    "get_main_hub",
    "isolation_scope",
    "merge_outgoing_baggage",
    "parse_baggage",
    "parse_trace_carrier",
    "parse_traceparent",
    "pop_scope",
    "pop_span",
    "push_scope",
    "push_span",
    "resolve_outbound_headers",
    "serialize_baggage",
    "with_scope",
]
