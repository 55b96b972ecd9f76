"""Span processor interface."""

from __future__ import annotations

from typing import Optional


class SpanProcessor:
    """
    Base span processor interface.

    Processors are called once for every sampled span when it finishes. The
    span is already finished and must be treated as read-only.
    """

    def on_end(self, span) -> None:
        """
        Called when a span finishes.

        Args:
            span: the finished Span (or Transaction)
        """
        pass

    def shutdown(self) -> None:
        """Shutdown the processor."""
        pass

    def force_flush(self, timeout: Optional[float] = None) -> None:
        """Force flush any pending spans."""
        pass
