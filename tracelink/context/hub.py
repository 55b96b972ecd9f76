"""Hub: the scope stack plus the bound client, stored per execution context."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar, TYPE_CHECKING

from opentelemetry import context as context_api

from tracelink import runtime_config
from tracelink.context.scope import Scope
from tracelink.errors import ScopeStackCorruption
from tracelink.tracer.span import Transaction
from tracelink.tracer.span_context import TransactionContext

if TYPE_CHECKING:
    from tracelink.client import Client

logger = logging.getLogger(__name__)

T = TypeVar("T")

_HUB_KEY = context_api.create_key("tracelink-hub")


@dataclass
class _Layer:
    client: Optional["Client"]
    scope: Scope


class ScopeHandle:
    """Returned by ``Hub.push_scope``; pops its layer when used as a context manager."""

    def __init__(self, hub: "Hub", scope: Scope, depth: int) -> None:
        self.hub = hub
        self.scope = scope
        self.depth = depth

    def __enter__(self) -> Scope:
        return self.scope

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.hub.pop_scope(self)
        return False


class Hub:
    """
    A LIFO stack of (client, scope) layers.

    ``Hub(other_hub)`` forks: the new hub shares the client and starts from a
    clone of the other hub's current scope. Using a hub as a context manager
    makes it current for the enclosed block in this execution context only.
    """

    def __init__(self, client_or_hub: Any = None, scope: Optional[Scope] = None) -> None:
        if isinstance(client_or_hub, Hub):
            client = client_or_hub.client
            if scope is None:
                scope = client_or_hub.get_scope().clone()
        else:
            client = client_or_hub
            if scope is None:
                scope = Scope()
        self._stack: List[_Layer] = [_Layer(client, scope)]
        self._tokens: List[object] = []

    def __repr__(self) -> str:
        return f"<Hub id={hex(id(self))} depth={len(self._stack)} client={self.client!r}>"

    @property
    def client(self) -> Optional["Client"]:
        return self._stack[-1].client

    def get_client(self) -> Optional["Client"]:
        return self.client

    def bind_client(self, client: Optional["Client"]) -> None:
        self._stack[-1].client = client

    def get_scope(self) -> Scope:
        return self._stack[-1].scope

    @property
    def scope(self) -> Scope:
        return self.get_scope()

    def get_span(self):
        return self.get_scope().span

    def fork(self) -> "Hub":
        return Hub(self)

    # Scope stack
    def push_scope(self) -> ScopeHandle:
        """Push a clone of the current scope and return a handle for popping it."""
        top = self._stack[-1]
        layer = _Layer(top.client, top.scope.clone())
        self._stack.append(layer)
        return ScopeHandle(self, layer.scope, len(self._stack) - 1)

    def pop_scope(self, handle: Optional[ScopeHandle] = None) -> None:
        """
        Pop the top scope.

        Popping the root layer, or a handle that is not on top, is stack
        corruption: it raises in debug mode and is logged and skipped
        otherwise.
        """
        if len(self._stack) <= 1:
            self._on_corruption("Attempted to pop the root scope", depth=len(self._stack))
            return
        if handle is not None:
            top_index = len(self._stack) - 1
            if handle.hub is not self or handle.depth != top_index or self._stack[top_index].scope is not handle.scope:
                self._on_corruption(
                    "Scope popped out of order",
                    depth=len(self._stack),
                    handle_depth=handle.depth,
                )
                return
        self._stack.pop()

    def _on_corruption(self, message: str, **details: Any) -> None:
        if runtime_config.get_debug():
            raise ScopeStackCorruption(message, details=details)
        logger.warning("%s (%s), ignoring", message, ", ".join(f"{k}={v}" for k, v in details.items()))

    def with_scope(self, callback: Callable[[Scope], T]) -> T:
        """Run ``callback`` with a forked scope; the fork is popped even on error."""
        handle = self.push_scope()
        try:
            return callback(handle.scope)
        finally:
            self.pop_scope(handle)

    def configure_scope(self, callback: Callable[[Scope], None]) -> None:
        callback(self.get_scope())

    # Transactions
    def start_transaction(self, context: Any = None, **kwargs: Any) -> Transaction:
        """
        Start a transaction bound to this hub.

        A continued trace inherits its trace id, sampling decision and DSC.
        A new trace gets a head sampling decision from the client's sampler.
        """
        if context is None:
            context = TransactionContext(**kwargs)
        else:
            context = TransactionContext.coerce(context)

        client = self.client
        options = client.options if client is not None else None

        sample_rate: Optional[float] = None
        if context.sampled is not None:
            sampled = context.sampled
            sample_rate = 1.0 if sampled else 0.0
        elif context.parent_sampled is not None:
            sampled = context.parent_sampled
            sample_rate = _inherited_sample_rate(context)
        elif client is not None and client.sampler is not None:
            result = client.sampler.should_sample(context.name)
            sampled = result.sampled
            sample_rate = result.sample_rate
        else:
            logger.debug("No traces_sample_rate configured, transaction %r is not sampled", context.name)
            sampled = False

        transaction = Transaction(
            name=context.name or "",
            source=context.source,
            sample_rate=sample_rate,
            dynamic_sampling_context=context.dynamic_sampling_context,
            max_spans=options.max_spans if options is not None else None,
            trace_id=context.trace_id,
            parent_span_id=context.parent_span_id,
            op=context.op,
            description=context.description,
            tags=context.tags,
            data=context.data,
            sampled=sampled,
            hub=self,
        )
        logger.debug("Started %r", transaction)
        return transaction

    # Context manager support
    def __enter__(self) -> "Hub":
        """Make this hub current for the enclosed block."""
        token = context_api.attach(context_api.set_value(_HUB_KEY, self))
        self._tokens.append(token)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._tokens:
            context_api.detach(self._tokens.pop())
        return False


def _inherited_sample_rate(context: TransactionContext) -> Optional[float]:
    dsc = context.dynamic_sampling_context or {}
    raw = dsc.get("sample_rate")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.debug("Ignoring unparseable sample_rate %r from upstream", raw)
        return None


_main_hub = Hub()


def get_main_hub() -> Hub:
    """The process-wide fallback hub."""
    return _main_hub


def get_current_hub() -> Hub:
    """The hub of the current execution context, falling back to the main hub."""
    hub = context_api.get_value(_HUB_KEY)
    if hub is None:
        return _main_hub
    return hub
