"""Lifecycle wrapper: run an operation inside a span and finalize it."""

from __future__ import annotations

import asyncio
import concurrent.futures
import dataclasses
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, TYPE_CHECKING

from tracelink.context.hub import get_current_hub
from tracelink.tracer.span import Span, SpanStatus, Transaction
from tracelink.tracer.span_context import TransactionContext

if TYPE_CHECKING:
    from tracelink.context.scope import Scope

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FUTURE_TYPES = (asyncio.Future, concurrent.futures.Future)


def _prepare_context(context: Any) -> TransactionContext:
    ctx = TransactionContext.coerce(context)
    # A name doubles as the description of a child span.
    if ctx.name is not None and ctx.description is None:
        ctx = dataclasses.replace(ctx, description=ctx.name)
    return ctx


def _start(ctx: TransactionContext, parent: Optional[Span]) -> Span:
    if parent is not None:
        return parent.start_child(op=ctx.op, description=ctx.description, tags=ctx.tags, data=ctx.data)
    return get_current_hub().start_transaction(ctx)


def start_transaction(context: Any = None, **kwargs: Any) -> Transaction:
    """Start a transaction on the current hub without activating it."""
    return get_current_hub().start_transaction(context, **kwargs)


def start_span(context: Any) -> Span:
    """
    Start a child of the active span, or a transaction when nothing is active.

    The span is not activated; use it as a context manager to activate it for
    a block.
    """
    ctx = _prepare_context(context)
    return _start(ctx, get_current_hub().get_scope().span)


def trace(
    context: Any,
    callback: Callable[[Span], T],
    on_error: Optional[Callable[[BaseException], None]] = None,
) -> T:
    """
    Run ``callback`` inside a new span and finish the span when it is done.

    The span is a child of the active span, or a new transaction when there
    is none, and is active on the current scope while the callback runs.

    - A synchronous exception marks the span ``internal_error``, is passed to
      ``on_error`` and re-raised unchanged.
    - A plain return value finishes the span and is returned.
    - A future or awaitable result is returned right away and the span stays
      open until it settles. A failure marks the span ``internal_error`` and is
      passed to ``on_error`` but is not raised here; whoever awaits the result
      still sees it.

    The previously active span is restored in the calling context before
    ``trace`` returns. Deferred work keeps the span active in the context it
    runs in: a task created by the callback inherits it, and an awaitable
    result re-activates it while it is awaited, restoring the awaiter's span
    when it settles.

    An ``asyncio.Future`` result has its exception read by the done-callback,
    so asyncio no longer logs "exception was never retrieved" for it; the
    failure reaches ``on_error`` instead.
    """
    ctx = _prepare_context(context)
    scope = get_current_hub().get_scope()
    parent_span = scope.span
    active_span = _start(ctx, parent_span)
    scope.span = active_span

    try:
        result = callback(active_span)
    except BaseException as exc:
        _fail(active_span, on_error, exc)
        scope.span = parent_span
        raise
    scope.span = parent_span

    if isinstance(result, _FUTURE_TYPES):
        def settle(future) -> None:
            if future.cancelled():
                _cancel(active_span)
                return
            error = future.exception()
            if error is None:
                active_span.finish()
            else:
                _fail(active_span, on_error, error)

        result.add_done_callback(settle)
        return result

    if inspect.isawaitable(result):
        return _settle_awaitable(result, scope, active_span, on_error)

    active_span.finish()
    return result


async def _settle_awaitable(
    awaitable: Awaitable[T],
    scope: "Scope",
    span: Span,
    on_error: Optional[Callable[[BaseException], None]],
) -> T:
    previous = scope.span
    scope.span = span
    try:
        value = await awaitable
    except asyncio.CancelledError:
        _cancel(span)
        raise
    except BaseException as exc:
        _fail(span, on_error, exc)
        raise
    finally:
        scope.span = previous
    span.finish()
    return value


def _fail(span: Span, on_error: Optional[Callable[[BaseException], None]], error: BaseException) -> None:
    span.set_status(SpanStatus.INTERNAL_ERROR)
    _report(on_error, error)
    span.finish()


def _cancel(span: Span) -> None:
    span.set_status(SpanStatus.CANCELLED)
    span.finish()


def _report(on_error: Optional[Callable[[BaseException], None]], error: BaseException) -> None:
    if on_error is None:
        return
    try:
        on_error(error)
    except Exception:
        logger.exception("on_error hook raised while handling %r", error)
