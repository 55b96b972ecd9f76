"""Span processors and supporting utilities."""

from tracelink.processors.logging_processor import LoggingSpanProcessor
from tracelink.processors.sampler import Sampler, SamplingResult

__all__ = [
    "LoggingSpanProcessor",
    "Sampler",
    "SamplingResult",
]
