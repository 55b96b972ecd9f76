"""@observe decorator for instrumenting functions."""

from __future__ import annotations

import functools
import inspect
import json
from typing import Any, Callable, Dict, Iterable, Optional

from tracelink.tracer.span import Span
from tracelink.tracer.span_context import TransactionContext
from tracelink.tracer.tracer import trace

_MAX_VALUE_LENGTH = 1000


def _capture_args(bound_args: inspect.BoundArguments, skip: Iterable[str]) -> Dict[str, Any]:
    """Capture function arguments as span data."""
    captured = {}
    for name, value in bound_args.arguments.items():
        if name in skip or name in ("self", "cls"):
            continue
        captured[f"arg.{name}"] = _convert_value(value)
    return captured


def _convert_value(value: Any) -> Any:
    """
    Convert a value into something that can live in span data.

    Primitives pass through, short sequences are converted element-wise and
    everything else becomes a truncated string.
    """
    if isinstance(value, (bool, str, int, float)) or value is None:
        if isinstance(value, str):
            return value[:_MAX_VALUE_LENGTH]
        return value

    if isinstance(value, (list, tuple)):
        converted = []
        for item in value[:100]:
            if isinstance(item, (bool, str, int, float)) or item is None:
                converted.append(_convert_value(item))
            else:
                converted.append(str(item)[:_MAX_VALUE_LENGTH])
        return converted

    if isinstance(value, dict):
        try:
            return json.dumps(value, default=str)[:_MAX_VALUE_LENGTH]
        except (TypeError, ValueError):
            return str(value)[:_MAX_VALUE_LENGTH]

    return str(value)[:_MAX_VALUE_LENGTH]


def observe(
    name: Optional[str] = None,
    *,
    op: str = "function",
    tags: Optional[Dict[str, Any]] = None,
    skip_args: Optional[Iterable[str]] = None,
    skip_result: bool = False,
    capture_args: bool = True,
    on_error: Optional[Callable[[BaseException], None]] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorate a function so that every call runs inside ``trace``.

    - Supports sync and async functions.
    - Errors mark the span ``internal_error`` and propagate unchanged.
    - Optionally captures arguments/results as span data.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        span_name = name or func.__qualname__
        skip_args_set = set(skip_args or [])
        signature = inspect.signature(func)

        def make_context(args, kwargs) -> TransactionContext:
            data: Dict[str, Any] = {"code.function": func.__qualname__, "code.namespace": func.__module__}
            if capture_args:
                try:
                    bound = signature.bind_partial(*args, **kwargs)
                    bound.apply_defaults()
                    data.update(_capture_args(bound, skip_args_set))
                except TypeError:
                    # let the call itself raise the argument error
                    pass
            return TransactionContext(name=span_name, op=op, tags=dict(tags or {}), data=data)

        def record_result(span: Span, result: Any) -> None:
            if not skip_result:
                span.set_data("result", _convert_value(result))

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                async def run(span: Span):
                    result = await func(*args, **kwargs)
                    record_result(span, result)
                    return result

                return await trace(make_context(args, kwargs), run, on_error)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            def run(span: Span):
                result = func(*args, **kwargs)
                record_result(span, result)
                return result

            return trace(make_context(args, kwargs), run, on_error)

        return sync_wrapper

    return decorator
