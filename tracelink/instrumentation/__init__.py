"""Instrumentation helpers for span producers."""

from tracelink.instrumentation.decorator import observe
from tracelink.instrumentation.http_client import inject_headers as inject_http_headers
from tracelink.instrumentation.http_server import (
    extract_transaction_context,
    server_transaction,
    start_server_transaction,
)

__all__ = [
    "observe",
    "inject_http_headers",
    "extract_transaction_context",
    "server_transaction",
    "start_server_transaction",
]
