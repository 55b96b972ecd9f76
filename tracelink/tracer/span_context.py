"""Immutable trace metadata."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from tracelink.errors import ValidationError


class TransactionSource(str, Enum):
    """Where a transaction name came from. ``url`` names never enter the DSC."""

    CUSTOM = "custom"
    URL = "url"
    ROUTE = "route"
    VIEW = "view"
    COMPONENT = "component"
    TASK = "task"


@dataclass(frozen=True)
class TraceContext:
    """Parsed trace pointer: the upstream span this process continues."""

    trace_id: str
    parent_span_id: str
    sampled: Optional[bool] = None


@dataclass
class TransactionContext:
    """Everything needed to start a span or a transaction.

    ``trace_id``/``parent_span_id``/``parent_sampled`` are set when a trace is
    continued from upstream. ``dynamic_sampling_context`` is None when this
    process owns the DSC and a (possibly empty) mapping when it does not.
    """

    name: Optional[str] = None
    op: Optional[str] = None
    description: Optional[str] = None
    source: TransactionSource = TransactionSource.CUSTOM
    tags: Dict[str, str] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)
    trace_id: Optional[str] = None
    parent_span_id: Optional[str] = None
    parent_sampled: Optional[bool] = None
    sampled: Optional[bool] = None
    dynamic_sampling_context: Optional[Mapping[str, str]] = None

    @classmethod
    def coerce(cls, context: Any) -> "TransactionContext":
        """Accept a TransactionContext, a plain mapping of its fields, or a name."""
        if isinstance(context, cls):
            return context
        if isinstance(context, str):
            return cls(name=context)
        if isinstance(context, Mapping):
            unknown = sorted(set(context) - {f.name for f in fields(cls)})
            if unknown:
                raise ValidationError("Unknown transaction context fields", details={"fields": unknown})
            return cls(**dict(context))
        raise ValidationError(
            "Cannot build a transaction context", details={"type": type(context).__name__}
        )
