"""Integrations: named sets of optional hooks installed on a client."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, TYPE_CHECKING

if TYPE_CHECKING:
    from tracelink.client import Client

logger = logging.getLogger(__name__)

Event = Dict[str, Any]
Hint = Dict[str, Any]


@dataclass(frozen=True)
class Integration:
    """
    A fixed set of optional hooks.

    - ``setup_once()``: runs once per process for this integration name.
    - ``setup(client)``: runs for every client the integration is installed on.
    - ``preprocess_event(event, hint, client)``: mutates a record before any
      ``process_event`` hook sees it.
    - ``process_event(event, hint, client)``: returns the (possibly modified)
      record, or None to drop it.
    """

    name: str
    setup_once: Optional[Callable[[], None]] = None
    setup: Optional[Callable[["Client"], None]] = None
    preprocess_event: Optional[Callable[[Event, Hint, "Client"], None]] = None
    process_event: Optional[Callable[[Event, Hint, "Client"], Optional[Event]]] = None


_installed_once: Set[str] = set()
_installed_lock = threading.Lock()


class IntegrationRegistry:
    """Installs integrations on one client and dispatches their hooks."""

    def __init__(self, client: "Client") -> None:
        self._client = client
        self._integrations: Dict[str, Integration] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._integrations

    def __iter__(self):
        return iter(self._integrations.values())

    @property
    def names(self) -> List[str]:
        return list(self._integrations)

    def install(self, integrations: Iterable[Integration]) -> None:
        """Install integrations; a later integration replaces an earlier one with the same name."""
        for integration in integrations:
            self._integrations[integration.name] = integration

        for integration in self._integrations.values():
            if integration.setup_once is not None:
                with _installed_lock:
                    first = integration.name not in _installed_once
                    _installed_once.add(integration.name)
                if first:
                    self._call(integration, "setup_once")
            if integration.setup is not None:
                self._call(integration, "setup", self._client)
            logger.debug("Integration installed: %s", integration.name)

    def apply(self, event: Event, hint: Optional[Hint] = None) -> Optional[Event]:
        """Run every ``preprocess_event`` hook, then every ``process_event`` hook."""
        hint = hint or {}
        for integration in self._integrations.values():
            if integration.preprocess_event is not None:
                self._call(integration, "preprocess_event", event, hint, self._client)

        for integration in self._integrations.values():
            if integration.process_event is None:
                continue
            try:
                result = integration.process_event(event, hint, self._client)
            except Exception:
                logger.exception("Integration %s failed in process_event", integration.name)
                continue
            if result is None:
                logger.debug("Record dropped by integration %s", integration.name)
                return None
            event = result
        return event

    def _call(self, integration: Integration, hook: str, *args: Any) -> None:
        try:
            getattr(integration, hook)(*args)
        except Exception:
            # hook failures are logged, never raised
            logger.exception("Integration %s failed in %s", integration.name, hook)


def _reset_installed_once() -> None:
    with _installed_lock:
        _installed_once.clear()
