"""Scope: the mutable contextual state of one logical execution context."""

from __future__ import annotations

import copy
import time
from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple, TYPE_CHECKING

from opentelemetry import context as context_api

from tracelink import runtime_config

if TYPE_CHECKING:
    from tracelink.tracer.span import Span, Transaction


class Scope:
    """
    Holds the active span plus tags, extras, user, breadcrumbs and contexts.

    The active span lives in the OpenTelemetry context under a key private to
    this scope, so every thread and asyncio task that shares the scope still
    sees only the spans it activated itself. A context that never set one
    falls back to the span the scope was created or cloned with.

    ``clone`` makes a structural copy: containers are deep-copied, the active
    span is shared by reference (a fork never duplicates a span).
    """

    def __init__(self, max_breadcrumbs: Optional[int] = None) -> None:
        if max_breadcrumbs is None:
            max_breadcrumbs = runtime_config.get_max_breadcrumbs()
        self._max_breadcrumbs = max_breadcrumbs
        self._span_key = context_api.create_key("tracelink-active-span")
        self._base_span: Optional["Span"] = None
        self._tags: Dict[str, str] = {}
        self._extras: Dict[str, Any] = {}
        self._user: Optional[Dict[str, Any]] = None
        self._contexts: Dict[str, Dict[str, Any]] = {}
        self._breadcrumbs: Deque[Dict[str, Any]] = deque(maxlen=max_breadcrumbs)
        self._level: Optional[str] = None
        self._transaction_name: Optional[str] = None

    def __repr__(self) -> str:
        return f"<Scope id={hex(id(self))} span={self.span!r}>"

    def clone(self) -> "Scope":
        new = Scope.__new__(Scope)
        new._max_breadcrumbs = self._max_breadcrumbs
        new._span_key = context_api.create_key("tracelink-active-span")
        new._base_span = self.span
        new._tags = dict(self._tags)
        new._extras = copy.deepcopy(self._extras)
        new._user = copy.deepcopy(self._user)
        new._contexts = copy.deepcopy(self._contexts)
        new._breadcrumbs = deque(copy.deepcopy(list(self._breadcrumbs)), maxlen=self._max_breadcrumbs)
        new._level = self._level
        new._transaction_name = self._transaction_name
        return new

    __copy__ = clone

    # Active span
    @property
    def span(self) -> Optional["Span"]:
        slot: Optional[Tuple[Optional["Span"]]] = context_api.get_value(self._span_key)
        if slot is None:
            return self._base_span
        return slot[0]

    @span.setter
    def span(self, span: Optional["Span"]) -> None:
        # wrapped so that an explicit None is told apart from "never set here"
        context_api.attach(context_api.set_value(self._span_key, (span,)))

    def get_span(self) -> Optional["Span"]:
        return self.span

    def set_span(self, span: Optional["Span"]) -> None:
        self.span = span

    @property
    def transaction(self) -> Optional["Transaction"]:
        """The transaction containing the active span, if any."""
        span = self.span
        if span is None:
            return None
        return span.containing_transaction

    @property
    def transaction_name(self) -> Optional[str]:
        transaction = self.transaction
        if transaction is not None and transaction.name:
            return transaction.name
        return self._transaction_name

    def set_transaction_name(self, name: str) -> None:
        self._transaction_name = name
        transaction = self.transaction
        if transaction is not None:
            transaction.set_name(name)

    # Contextual data
    @property
    def tags(self) -> Dict[str, str]:
        return dict(self._tags)

    @property
    def extras(self) -> Dict[str, Any]:
        return dict(self._extras)

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def contexts(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._contexts)

    @property
    def breadcrumbs(self) -> list:
        return list(self._breadcrumbs)

    @property
    def level(self) -> Optional[str]:
        return self._level

    def set_tag(self, key: str, value: Any) -> None:
        self._tags[key] = str(value)

    def set_tags(self, tags: Dict[str, Any]) -> None:
        for key, value in tags.items():
            self.set_tag(key, value)

    def remove_tag(self, key: str) -> None:
        self._tags.pop(key, None)

    def set_extra(self, key: str, value: Any) -> None:
        self._extras[key] = value

    def remove_extra(self, key: str) -> None:
        self._extras.pop(key, None)

    def set_user(self, user: Optional[Dict[str, Any]]) -> None:
        self._user = dict(user) if user is not None else None

    def set_context(self, key: str, value: Dict[str, Any]) -> None:
        self._contexts[key] = dict(value)

    def remove_context(self, key: str) -> None:
        self._contexts.pop(key, None)

    def set_level(self, level: Optional[str]) -> None:
        self._level = level

    def add_breadcrumb(self, message: Optional[str] = None, category: Optional[str] = None, **kwargs: Any) -> None:
        """Append a breadcrumb; the oldest one is dropped past ``max_breadcrumbs``."""
        if self._max_breadcrumbs <= 0:
            return
        crumb: Dict[str, Any] = {"timestamp": time.time(), "message": message, "category": category}
        crumb.update(kwargs)
        self._breadcrumbs.append({k: v for k, v in crumb.items() if v is not None})

    def clear_breadcrumbs(self) -> None:
        self._breadcrumbs.clear()

    def clear(self) -> None:
        """Reset every field, including the active span of the current context."""
        self._base_span = None
        self.span = None
        self._tags = {}
        self._extras = {}
        self._user = None
        self._contexts = {}
        self._breadcrumbs = deque(maxlen=self._max_breadcrumbs)
        self._level = None
        self._transaction_name = None

    def apply_to_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Merge scope data into an event record; values already on the event win."""
        if self._tags:
            event["tags"] = {**self._tags, **event.get("tags", {})}
        if self._extras:
            event["extra"] = {**self._extras, **event.get("extra", {})}
        if self._user is not None and "user" not in event:
            event["user"] = dict(self._user)
        if self._contexts:
            event["contexts"] = {**copy.deepcopy(self._contexts), **event.get("contexts", {})}
        if self._breadcrumbs:
            event.setdefault("breadcrumbs", {"values": list(self._breadcrumbs)})
        if self._level is not None:
            event.setdefault("level", self._level)
        return event
