"""Runtime configuration state management."""

# Global runtime configuration state
_config = {
    "debug": False,
    "max_spans": 1000,
    "max_breadcrumbs": 100,
    "propagate_traceparent": False,
}


def set_debug(value: bool) -> None:
    _config["debug"] = value


def get_debug() -> bool:
    return _config["debug"]


def set_max_spans(value: int) -> None:
    _config["max_spans"] = value


def get_max_spans() -> int:
    return _config["max_spans"]


def set_max_breadcrumbs(value: int) -> None:
    _config["max_breadcrumbs"] = value


def get_max_breadcrumbs() -> int:
    return _config["max_breadcrumbs"]


def set_propagate_traceparent(value: bool) -> None:
    _config["propagate_traceparent"] = value


def get_propagate_traceparent() -> bool:
    return _config["propagate_traceparent"]


def reset() -> None:
    """Restore every runtime setting to its default."""
    set_debug(False)
    set_max_spans(1000)
    set_max_breadcrumbs(100)
    set_propagate_traceparent(False)
