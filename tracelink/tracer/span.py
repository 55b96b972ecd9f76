"""Span and transaction tree."""

from __future__ import annotations

import logging
import time
import uuid
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, TYPE_CHECKING

from tracelink.tracer.ids import new_span_id, new_trace_id
from tracelink.tracer.span_context import TransactionSource
from tracelink.utils.helpers import format_sample_rate, get_duration_ns

if TYPE_CHECKING:
    from tracelink.context.hub import Hub
    from tracelink.context.scope import Scope

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "production"


class SpanStatus(str, Enum):
    OK = "ok"
    CANCELLED = "cancelled"
    UNKNOWN_ERROR = "unknown_error"
    INVALID_ARGUMENT = "invalid_argument"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    FAILED_PRECONDITION = "failed_precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out_of_range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL_ERROR = "internal_error"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data_loss"
    UNAUTHENTICATED = "unauthenticated"

    @classmethod
    def from_http_status(cls, http_status: int) -> "SpanStatus":
        """Map an HTTP status code onto the closest span status."""
        if http_status < 400 and http_status >= 100:
            return cls.OK
        if 400 <= http_status < 500:
            return {
                400: cls.FAILED_PRECONDITION,
                401: cls.UNAUTHENTICATED,
                403: cls.PERMISSION_DENIED,
                404: cls.NOT_FOUND,
                409: cls.ALREADY_EXISTS,
                413: cls.FAILED_PRECONDITION,
                429: cls.RESOURCE_EXHAUSTED,
            }.get(http_status, cls.INVALID_ARGUMENT)
        if 500 <= http_status < 600:
            return {
                501: cls.UNIMPLEMENTED,
                503: cls.UNAVAILABLE,
                504: cls.DEADLINE_EXCEEDED,
            }.get(http_status, cls.INTERNAL_ERROR)
        return cls.UNKNOWN_ERROR


class Span:
    """
    A timed unit of work with a position in a trace tree.

    Once finished a span ignores further mutation. Finishing a span never
    finishes its children.
    """

    def __init__(
        self,
        trace_id: Optional[str] = None,
        span_id: Optional[str] = None,
        parent_span_id: Optional[str] = None,
        op: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[SpanStatus] = None,
        tags: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        sampled: Optional[bool] = None,
        start_time_ns: Optional[int] = None,
        hub: Optional["Hub"] = None,
        containing_transaction: Optional["Transaction"] = None,
    ) -> None:
        self.trace_id = trace_id or new_trace_id()
        self.span_id = span_id or new_span_id()
        self.parent_span_id = parent_span_id
        self.op = op
        self.description = description
        self.status = SpanStatus(status) if status is not None else None
        self.tags: Dict[str, str] = {k: str(v) for k, v in (tags or {}).items()}
        self.data: Dict[str, Any] = dict(data or {})
        self.sampled = sampled
        self.start_time_ns = start_time_ns if start_time_ns is not None else time.time_ns()
        self.end_time_ns: Optional[int] = None

        self._hub = hub
        self._containing_transaction = containing_transaction
        self._activations: List[Tuple["Scope", Optional["Span"]]] = []

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}(op={self.op!r}, description={self.description!r}, "
            f"trace_id={self.trace_id!r}, span_id={self.span_id!r}, "
            f"parent_span_id={self.parent_span_id!r}, sampled={self.sampled!r})>"
        )

    @property
    def finished(self) -> bool:
        return self.end_time_ns is not None

    @property
    def duration_ns(self) -> Optional[int]:
        return get_duration_ns(self.start_time_ns, self.end_time_ns)

    @property
    def containing_transaction(self) -> Optional["Transaction"]:
        return self._containing_transaction

    @property
    def hub(self) -> "Hub":
        if self._hub is not None:
            return self._hub
        from tracelink.context.hub import get_current_hub
        return get_current_hub()

    def set_tag(self, key: str, value: Any) -> None:
        if self.finished:
            return
        self.tags[key] = str(value)

    def set_data(self, key: str, value: Any) -> None:
        if self.finished:
            return
        self.data[key] = value

    def set_status(self, status: SpanStatus) -> None:
        if self.finished:
            return
        self.status = SpanStatus(status)

    def set_http_status(self, http_status: int) -> None:
        """Record an HTTP response code and derive the span status from it."""
        self.set_tag("http.status_code", http_status)
        self.set_data("http.response.status_code", http_status)
        self.set_status(SpanStatus.from_http_status(http_status))

    def is_success(self) -> bool:
        return self.status == SpanStatus.OK

    def start_child(self, op: Optional[str] = None, description: Optional[str] = None, **kwargs: Any) -> "Span":
        """
        Start a span under this one.

        The child copies ``trace_id`` and ``sampled`` at creation; later
        changes to this span do not reach it.
        """
        child = Span(
            trace_id=self.trace_id,
            parent_span_id=self.span_id,
            op=op,
            description=description,
            sampled=self.sampled,
            hub=self._hub,
            containing_transaction=self._containing_transaction,
            **kwargs,
        )
        if self._containing_transaction is not None:
            self._containing_transaction._record(child)
        return child

    def finish(self, status: Optional[SpanStatus] = None, end_time_ns: Optional[int] = None) -> None:
        """
        Finish the span.

        Sets the end time and, when given, the status. Calling it again is a
        no-op. Children that are still open stay open.
        """
        if self.finished:
            logger.debug("%r was already finished, ignoring", self)
            return
        if status is not None:
            self.status = SpanStatus(status)
        elif self.status is None:
            self.status = SpanStatus.OK
        self.end_time_ns = end_time_ns if end_time_ns is not None else time.time_ns()

        if self.sampled:
            client = self.hub.client
            if client is not None:
                client.on_span_end(self)

    def to_trace_header(self) -> str:
        """Serialize as a ``sentry-trace`` header value."""
        from tracelink.context.propagators import format_trace_carrier
        return format_trace_carrier(self)

    def to_traceparent(self) -> str:
        """Serialize as a W3C ``traceparent`` header value."""
        from tracelink.context.propagators import format_traceparent
        return format_traceparent(self)

    def get_trace_context(self) -> Dict[str, Any]:
        context: Dict[str, Any] = {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "op": self.op,
            "description": self.description,
            "status": self.status.value if self.status else None,
        }
        if self.data:
            context["data"] = dict(self.data)
        return {k: v for k, v in context.items() if v is not None}

    def to_json(self) -> Dict[str, Any]:
        record = self.get_trace_context()
        record["start_timestamp"] = self.start_time_ns / 1e9
        record["timestamp"] = self.end_time_ns / 1e9 if self.end_time_ns is not None else None
        if self.tags:
            record["tags"] = dict(self.tags)
        return record

    # Context manager support
    def __enter__(self) -> "Span":
        """Make this span the active span of the current scope."""
        scope = self.hub.get_scope()
        self._activations.append((scope, scope.span))
        scope.span = self
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        """Finish the span and restore the previously active span."""
        try:
            if exc is not None:
                self.set_status(SpanStatus.INTERNAL_ERROR)
            self.finish()
        finally:
            if self._activations:
                scope, previous = self._activations.pop()
                scope.span = previous
        return False

    async def __aenter__(self) -> "Span":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return self.__exit__(exc_type, exc, tb)


class Transaction(Span):
    """
    Root span of a trace inside this process.

    Carries the transaction name and the dynamic sampling context (DSC). The
    DSC is either handed in from upstream (frozen as received) or computed
    once, on first request, when this process owns the trace.
    """

    def __init__(
        self,
        name: str = "",
        source: TransactionSource = TransactionSource.CUSTOM,
        sample_rate: Optional[float] = None,
        dynamic_sampling_context: Optional[Mapping[str, str]] = None,
        max_spans: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.name = name
        self.source = TransactionSource(source)
        self.sample_rate = sample_rate
        self._containing_transaction = self
        self._recorded_spans: List[Span] = []
        self._dropped_spans = 0
        if max_spans is None:
            from tracelink import runtime_config
            max_spans = runtime_config.get_max_spans()
        self._max_spans = max_spans

        self._dsc: Optional[Mapping[str, str]] = None
        if dynamic_sampling_context is not None:
            self._dsc = MappingProxyType(dict(dynamic_sampling_context))

    def __repr__(self) -> str:
        return (
            f"<Transaction(name={self.name!r}, op={self.op!r}, trace_id={self.trace_id!r}, "
            f"span_id={self.span_id!r}, parent_span_id={self.parent_span_id!r}, "
            f"sampled={self.sampled!r})>"
        )

    @property
    def spans(self) -> List[Span]:
        """Recorded descendants, in creation order."""
        return list(self._recorded_spans)

    @property
    def owns_dynamic_sampling_context(self) -> bool:
        """True while no DSC was handed in from upstream and none was computed yet."""
        return self._dsc is None

    def set_name(self, name: str, source: Optional[TransactionSource] = None) -> None:
        if self.finished:
            return
        self.name = name
        if source is not None:
            self.source = TransactionSource(source)

    def _record(self, span: Span) -> None:
        if len(self._recorded_spans) >= self._max_spans:
            self._dropped_spans += 1
            logger.debug("Transaction %r reached max_spans=%d, not recording %r", self.name, self._max_spans, span)
            return
        self._recorded_spans.append(span)

    def get_dynamic_sampling_context(self) -> Mapping[str, str]:
        """
        Return the DSC for this trace, computing it on first call when this
        process is the owner. The result is read-only and never recomputed.
        """
        if self._dsc is None:
            self._dsc = MappingProxyType(self._populate_dynamic_sampling_context())
            logger.debug("Computed dynamic sampling context for trace %s", self.trace_id)
        return self._dsc

    def _populate_dynamic_sampling_context(self) -> Dict[str, str]:
        client = self.hub.client
        options = client.options if client is not None else None

        sampled = None
        if self.sampled is not None:
            sampled = "true" if self.sampled else "false"

        entries = {
            "environment": (options.environment if options else None) or DEFAULT_ENVIRONMENT,
            "release": options.release if options else None,
            "public_key": client.public_key if client is not None else None,
            "trace_id": self.trace_id,
            "sample_rate": format_sample_rate(self.sample_rate),
            "transaction": self.name if self.name and self.source != TransactionSource.URL else None,
            "sampled": sampled,
        }
        return {k: v for k, v in entries.items() if v is not None}

    def finish(self, status: Optional[SpanStatus] = None, end_time_ns: Optional[int] = None) -> None:
        """
        Finish the transaction and hand it to the bound client.

        Open children are reported in the debug log and left open.
        """
        if self.finished:
            logger.debug("%r was already finished, ignoring", self)
            return
        super().finish(status=status, end_time_ns=end_time_ns)

        open_spans = [span for span in self._recorded_spans if not span.finished]
        if open_spans:
            logger.debug(
                "Transaction %r finished with %d open child span(s); they are not closed",
                self.name,
                len(open_spans),
            )

        if not self.sampled:
            logger.debug("Discarding transaction %r because it was not sampled", self.name)
            return

        hub = self.hub
        client = hub.client
        if client is None:
            logger.debug("Discarding transaction %r because no client is bound", self.name)
            return
        client.capture_transaction(self, scope=hub.get_scope())

    def to_event(self) -> Dict[str, Any]:
        """Build the finished-transaction record handed to the transport."""
        return {
            "type": "transaction",
            "event_id": uuid.uuid4().hex,
            "transaction": self.name,
            "transaction_info": {"source": self.source.value},
            "start_timestamp": self.start_time_ns / 1e9,
            "timestamp": self.end_time_ns / 1e9 if self.end_time_ns is not None else None,
            "contexts": {"trace": self.get_trace_context()},
            "tags": dict(self.tags),
            "spans": [span.to_json() for span in self._recorded_spans if span.finished],
            "sdk_processing_metadata": {
                "dynamic_sampling_context": dict(self.get_dynamic_sampling_context()),
                "dropped_spans": self._dropped_spans,
            },
        }
