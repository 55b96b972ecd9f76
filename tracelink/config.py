"""Client configuration: pydantic options model plus TOML/env loading.

Priority, lowest to highest: config file, environment variables, explicit
arguments. The config file is ``./tracelink.toml`` or
``~/.tracelink/config.toml`` unless a path is given.

Example file::

    [client]
    dsn = "https://public@o1.ingest.example.com/1"
    environment = "staging"
    release = "2.0.0"

    [tracing]
    traces_sample_rate = 0.25
    propagate_traceparent = true

    [scope]
    max_breadcrumbs = 50
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from tracelink.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "TRACELINK_"
CONFIG_FILE_NAME = "tracelink.toml"


class ClientOptions(BaseModel):
    """Validated client options."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    dsn: Optional[str] = Field(default=None, description="Project DSN; its user part is the public key")
    environment: str = Field(default="production", min_length=1, description="Deployment environment")
    release: Optional[str] = Field(default=None, description="Release identifier")
    traces_sample_rate: Optional[float] = Field(
        default=None, ge=0.0, le=1.0, description="Head sampling rate for traces started here"
    )
    debug: bool = Field(default=False, description="Verbose logging and strict scope-stack checks")
    max_spans: int = Field(default=1000, ge=0, description="Child spans recorded per transaction")
    max_breadcrumbs: int = Field(default=100, ge=0, description="Breadcrumbs kept per scope")
    propagate_traceparent: bool = Field(default=False, description="Also emit a W3C traceparent header")

    @field_validator("dsn")
    @classmethod
    def validate_dsn(cls, v: Optional[str]) -> Optional[str]:
        """A DSN must be an http(s) URL carrying a public key."""
        if v is None or v == "":
            return None
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(f"DSN must be an http(s) URL, got {v!r}")
        if not parts.username:
            raise ValueError("DSN is missing its public key")
        return v

    @property
    def public_key(self) -> Optional[str]:
        if not self.dsn:
            return None
        return urlsplit(self.dsn).username


# TOML section -> option names it may contain
_SECTIONS: Dict[str, Tuple[str, ...]] = {
    "client": ("dsn", "environment", "release", "debug"),
    "tracing": ("traces_sample_rate", "max_spans", "propagate_traceparent"),
    "scope": ("max_breadcrumbs",),
}


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


_ENV_VARS: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "DSN": ("client", "dsn", str),
    "ENVIRONMENT": ("client", "environment", str),
    "RELEASE": ("client", "release", str),
    "DEBUG": ("client", "debug", _parse_bool),
    "TRACES_SAMPLE_RATE": ("tracing", "traces_sample_rate", float),
    "MAX_SPANS": ("tracing", "max_spans", int),
    "PROPAGATE_TRACEPARENT": ("tracing", "propagate_traceparent", _parse_bool),
    "MAX_BREADCRUMBS": ("scope", "max_breadcrumbs", int),
}


def find_config_file() -> Optional[str]:
    """Return the first existing config file path, or None."""
    candidates = [
        Path.cwd() / CONFIG_FILE_NAME,
        Path.home() / ".tracelink" / "config.toml",
    ]
    for candidate in candidates:
        if candidate.is_file():
            return str(candidate)
    return None


def load_toml_config(path: str) -> Dict[str, Any]:
    """
    Load a TOML config file as a nested dict.

    Returns an empty dict when the file does not exist and raises
    ConfigError when it cannot be parsed.
    """
    config_path = Path(path)
    if not config_path.is_file():
        logger.debug("Config file %s not found", path)
        return {}
    try:
        with config_path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError("Invalid TOML in config file", details={"path": path, "error": str(exc)}) from exc


def flatten_config(nested: Mapping[str, Any]) -> Dict[str, Any]:
    """Flatten ``[section]`` tables into option names; unknown keys are ignored."""
    flat: Dict[str, Any] = {}
    known = {name for names in _SECTIONS.values() for name in names}
    for key, value in nested.items():
        if key in _SECTIONS and isinstance(value, Mapping):
            for option, option_value in value.items():
                if option in _SECTIONS[key]:
                    flat[option] = option_value
                else:
                    logger.debug("Ignoring unknown option %s.%s", key, option)
        elif key in known:
            flat[key] = value
        else:
            logger.debug("Ignoring unknown config key %s", key)
    return flat


def load_config_from_env(flat: bool = True) -> Dict[str, Any]:
    """
    Read ``TRACELINK_*`` environment variables.

    Values are converted to the option's type; missing variables are
    omitted. With ``flat=False`` the result is grouped by TOML section.
    """
    result: Dict[str, Any] = {}
    for suffix, (section, option, convert) in _ENV_VARS.items():
        env_name = ENV_PREFIX + suffix
        raw = os.environ.get(env_name)
        if raw is None:
            continue
        try:
            value = convert(raw)
        except ValueError as exc:
            raise ConfigError("Invalid environment variable", details={"name": env_name, "value": raw}) from exc
        if flat:
            result[option] = value
        else:
            result.setdefault(section, {})[option] = value
    return result


def load_config_with_priority(
    config_file: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Merge file, environment and explicit overrides into one flat dict."""
    merged: Dict[str, Any] = {}

    path = config_file or find_config_file()
    if path:
        merged.update(flatten_config(load_toml_config(path)))

    merged.update(load_config_from_env(flat=True))

    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value
    return merged


def validate_config(values: Mapping[str, Any]) -> ClientOptions:
    """Validate a flat option mapping, raising ConfigError on bad values."""
    try:
        return ClientOptions(**dict(values))
    except PydanticValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError("Invalid configuration", details={"errors": errors}) from exc


def load_config(config_file: Optional[str] = None, **overrides: Any) -> ClientOptions:
    """Load, merge and validate options in one step."""
    return validate_config(load_config_with_priority(config_file=config_file, overrides=overrides))
