"""HTTP server helpers for continuing traces and creating server transactions."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from tracelink.context.context import isolation_scope
from tracelink.context.hub import Hub, get_current_hub
from tracelink.context.propagators import continue_trace
from tracelink.tracer.span import Transaction
from tracelink.tracer.span_context import TransactionContext, TransactionSource


def extract_transaction_context(
    headers: Mapping[str, Any],
    name: str,
    source: TransactionSource = TransactionSource.ROUTE,
    op: str = "http.server",
) -> TransactionContext:
    """Parse sentry-trace/baggage from request headers into a transaction context."""
    return continue_trace(headers, name=name, op=op, source=source)


def start_server_transaction(
    headers: Mapping[str, Any],
    name: str,
    source: TransactionSource = TransactionSource.ROUTE,
    op: str = "http.server",
    hub: Optional[Hub] = None,
) -> Transaction:
    """
    Start (but do not activate) a transaction for an incoming request.

    The transaction continues the caller's trace when the headers carry one.
    """
    context = extract_transaction_context(headers, name, source=source, op=op)
    return (hub or get_current_hub()).start_transaction(context)


@contextmanager
def server_transaction(
    headers: Mapping[str, Any],
    name: str,
    source: TransactionSource = TransactionSource.ROUTE,
    op: str = "http.server",
) -> Iterator[Transaction]:
    """
    Handle one incoming request on an isolated hub.

    The transaction is active for the block and finished on exit; an
    exception marks it ``internal_error`` and propagates.
    """
    with isolation_scope() as scope:
        scope.span = None
        transaction = start_server_transaction(headers, name, source=source, op=op)
        with transaction:
            yield transaction
