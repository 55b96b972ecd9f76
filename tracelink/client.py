"""Client: options, span processors, integrations and the transport hand-off."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, TYPE_CHECKING

from tracelink.config import ClientOptions
from tracelink.integrations import Integration, IntegrationRegistry
from tracelink.processors.sampler import Sampler
from tracelink.tracer.processor import SpanProcessor

if TYPE_CHECKING:
    from tracelink.context.scope import Scope
    from tracelink.tracer.span import Span, Transaction

logger = logging.getLogger(__name__)

Transport = Callable[[Dict[str, Any]], None]


class Client:
    """
    Receives finished spans and transactions.

    Span processors see every finished sampled span. Finished sampled
    transactions are turned into a record, passed through the integrations
    and handed to ``transport``; shipping the record is the transport's job.
    """

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        transport: Optional[Transport] = None,
        integrations: Iterable[Integration] = (),
        span_processors: Iterable[SpanProcessor] = (),
    ) -> None:
        self.options = options or ClientOptions()
        self.transport = transport
        self.sampler: Optional[Sampler] = None
        if self.options.traces_sample_rate is not None:
            self.sampler = Sampler(self.options.traces_sample_rate)

        self._span_processors: List[SpanProcessor] = list(span_processors)
        self._closed = False

        self.integrations = IntegrationRegistry(self)
        self.integrations.install(integrations)

    def __repr__(self) -> str:
        return f"<Client environment={self.options.environment!r} release={self.options.release!r}>"

    @property
    def public_key(self) -> Optional[str]:
        return self.options.public_key

    def add_span_processor(self, processor: SpanProcessor) -> None:
        self._span_processors.append(processor)

    def on_span_end(self, span: "Span") -> None:
        """Run span processors for a finished span."""
        if self._closed:
            return
        for processor in self._span_processors:
            try:
                processor.on_end(span)
            except Exception:
                # Processors should not crash tracing
                logger.exception("Span processor %r failed", processor)

    def capture_transaction(self, transaction: "Transaction", scope: Optional["Scope"] = None) -> Optional[Dict[str, Any]]:
        """
        Build the record for a finished transaction and hand it to the transport.

        Returns the record that was sent, or None when it was dropped.
        """
        if self._closed:
            logger.debug("Client is closed, dropping transaction %r", transaction.name)
            return None

        event = transaction.to_event()
        if scope is not None:
            scope.apply_to_event(event)
        if self.options.release and "release" not in event:
            event["release"] = self.options.release
        event.setdefault("environment", self.options.environment)

        event = self.integrations.apply(event, {"transaction": transaction})
        if event is None:
            return None

        if self.transport is None:
            logger.debug("No transport configured, transaction %r not sent", transaction.name)
            return event
        try:
            self.transport(event)
        except Exception:
            logger.exception("Transport failed for transaction %r", transaction.name)
        return event

    def flush(self, timeout: Optional[float] = None) -> None:
        for processor in self._span_processors:
            try:
                processor.force_flush(timeout=timeout)
            except Exception:
                logger.exception("Span processor %r failed to flush", processor)

    def close(self, timeout: Optional[float] = None) -> None:
        """Flush and shut down processors; the client drops everything afterwards."""
        if self._closed:
            return
        self.flush(timeout=timeout)
        for processor in self._span_processors:
            try:
                processor.shutdown()
            except Exception:
                logger.exception("Span processor %r failed to shut down", processor)
        self._closed = True
