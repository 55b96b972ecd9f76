"""Span tree components."""

from tracelink.tracer.ids import new_span_id, new_trace_id
from tracelink.tracer.processor import SpanProcessor
from tracelink.tracer.span import Span, SpanStatus, Transaction
from tracelink.tracer.span_context import TraceContext, TransactionContext, TransactionSource

__all__ = [
    "Span",
    "SpanStatus",
    "SpanProcessor",
    "TraceContext",
    "Transaction",
    "TransactionContext",
    "TransactionSource",
    "new_span_id",
    "new_trace_id",
]
