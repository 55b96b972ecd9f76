"""Context helpers for the active span and the current hub's scope stack."""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar, TYPE_CHECKING

from tracelink.context.hub import Hub, ScopeHandle, get_current_hub
from tracelink.context.scope import Scope

if TYPE_CHECKING:
    from tracelink.tracer.span import Span

T = TypeVar("T")


@dataclass(frozen=True)
class SpanToken:
    """Restores the span that was active before ``push_span``."""

    scope: Scope
    previous: Optional["Span"]


def get_current_span() -> Optional["Span"]:
    """Return the active span of the current scope, if any."""
    return get_current_hub().get_scope().span


def push_span(span: "Span") -> SpanToken:
    """
    Make ``span`` the active span of the current scope.

    Returns:
        Token needed to restore the previous state
    """
    scope = get_current_hub().get_scope()
    token = SpanToken(scope=scope, previous=scope.span)
    scope.span = span
    return token


def pop_span(token: SpanToken) -> None:
    """
    Restore the previously active span using the provided token.

    Args:
        token: Token returned by push_span()
    """
    token.scope.span = token.previous


def push_scope() -> ScopeHandle:
    return get_current_hub().push_scope()


def pop_scope(handle: Optional[ScopeHandle] = None) -> None:
    get_current_hub().pop_scope(handle)


def with_scope(callback: Callable[[Scope], T]) -> T:
    """Run ``callback`` with a forked scope of the current hub."""
    return get_current_hub().with_scope(callback)


@contextmanager
def isolation_scope() -> Iterator[Scope]:
    """
    Run the enclosed block on a forked hub.

    Scope changes and scope pushes inside the block are invisible to the
    caller and to concurrently running tasks.
    """
    with Hub(get_current_hub()) as hub:
        yield hub.get_scope()
