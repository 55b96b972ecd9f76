"""HTTP client helpers for context propagation."""

from __future__ import annotations

from typing import MutableMapping, Optional

from tracelink.context.baggage import BAGGAGE_HEADER, merge_outgoing_baggage
from tracelink.context.context import get_current_span
from tracelink.context.propagators import resolve_outbound_headers
from tracelink.tracer.span import Span


def _pop_header(headers: MutableMapping[str, str], name: str) -> Optional[str]:
    for key in list(headers):
        if key.lower() == name:
            return headers.pop(key)
    return None


def inject_headers(headers: MutableMapping[str, str], span: Optional[Span] = None) -> MutableMapping[str, str]:
    """
    Inject sentry-trace/baggage (and traceparent when enabled) into an
    outbound request's headers for ``span`` or the active span.

    Third-party items of a baggage header already on the request are kept;
    its ``sentry-`` items are replaced by this trace's DSC. Returns the same
    headers mapping for convenience.
    """
    span = span or get_current_span()
    if span is None:
        return headers

    outbound = resolve_outbound_headers(span)
    existing_baggage = _pop_header(headers, BAGGAGE_HEADER)
    for name, value in outbound.items():
        if name == BAGGAGE_HEADER:
            continue
        _pop_header(headers, name)
        headers[name] = value

    if existing_baggage is None:
        if BAGGAGE_HEADER in outbound:
            headers[BAGGAGE_HEADER] = outbound[BAGGAGE_HEADER]
        return headers

    transaction = span.containing_transaction
    dsc = transaction.get_dynamic_sampling_context() if transaction is not None else {}
    merged = merge_outgoing_baggage(existing_baggage, dsc)
    if merged:
        headers[BAGGAGE_HEADER] = merged
    return headers
