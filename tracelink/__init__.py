"""tracelink: trace-context propagation and span lifecycle management."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from tracelink.context import (
    Baggage,
    Hub,
    Scope,
    continue_trace,
    get_current_hub,
    get_current_span,
    get_main_hub,
    isolation_scope,
    parse_baggage,
    parse_trace_carrier,
    pop_scope,
    push_scope,
    resolve_outbound_headers,
    serialize_baggage,
    with_scope,
)
from tracelink import runtime_config
from tracelink.client import Client, Transport
from tracelink.config import ClientOptions, load_config
from tracelink.errors import ConfigError, ScopeStackCorruption, TracelinkError, ValidationError
from tracelink.instrumentation import inject_http_headers, observe, server_transaction
from tracelink.integrations import Integration
from tracelink.processors import LoggingSpanProcessor
from tracelink.tracer import (
    Span,
    SpanProcessor,
    SpanStatus,
    TraceContext,
    Transaction,
    TransactionContext,
    TransactionSource,
)
from tracelink.tracer.tracer import start_span, start_transaction, trace
from tracelink.utils.helpers import configure_debug_logging

__version__ = "0.3.0"

logger = logging.getLogger(__name__)


def init(
    dsn: Optional[str] = None,
    *,
    config_file: Optional[str] = None,
    transport: Optional[Transport] = None,
    integrations: Iterable[Integration] = (),
    span_processors: Iterable[SpanProcessor] = (),
    log_spans: bool = False,
    **options: Any,
) -> Client:
    """
    Configure a client and bind it to the main hub and the current hub.

    Options come from the config file, then ``TRACELINK_*`` environment
    variables, then keyword arguments (highest priority). Calling ``init``
    again closes and replaces the previous client.
    """
    client_options = load_config(config_file=config_file, dsn=dsn, **options)

    runtime_config.set_debug(client_options.debug)
    runtime_config.set_max_spans(client_options.max_spans)
    runtime_config.set_max_breadcrumbs(client_options.max_breadcrumbs)
    runtime_config.set_propagate_traceparent(client_options.propagate_traceparent)
    configure_debug_logging(client_options.debug)

    processors = list(span_processors)
    if log_spans:
        processors.append(LoggingSpanProcessor())

    client = Client(
        client_options,
        transport=transport,
        integrations=integrations,
        span_processors=processors,
    )

    main_hub = get_main_hub()
    previous = main_hub.client
    if previous is not None:
        logger.debug("init() called again, replacing %r", previous)
        previous.close()
    main_hub.bind_client(client)
    current = get_current_hub()
    if current is not main_hub:
        current.bind_client(client)

    logger.debug("tracelink initialized: %r", client)
    return client


def shutdown(timeout: Optional[float] = None) -> None:
    """Close the bound client and unbind it from the main and current hubs."""
    main_hub = get_main_hub()
    current = get_current_hub()
    for hub in {id(main_hub): main_hub, id(current): current}.values():
        client = hub.client
        if client is not None:
            client.close(timeout=timeout)
            hub.bind_client(None)
    runtime_config.reset()
    configure_debug_logging(False)


__all__ = [
    "__version__",
    "Baggage",
    "Client",
    "ClientOptions",
    "ConfigError",
    "Hub",
    "Integration",
    "LoggingSpanProcessor",
    "Scope",
    "ScopeStackCorruption",
    "Span",
    "SpanProcessor",
    "SpanStatus",
    "TraceContext",
    "TracelinkError",
    "Transaction",
    "TransactionContext",
    "TransactionSource",
    "ValidationError",
    "continue_trace",
    "get_current_hub",
    "get_current_span",
    "init",
    "inject_http_headers",
    "isolation_scope",
    "observe",
    "parse_baggage",
    "parse_trace_carrier",
    "pop_scope",
    "push_scope",
    "resolve_outbound_headers",
    "serialize_baggage",
    "server_transaction",
    "shutdown",
    "start_span",
    "start_transaction",
    "trace",
    "with_scope",
]
