"""Tracelink error hierarchy and exceptions."""

from __future__ import annotations


class TracelinkError(Exception):
    """Base exception for all tracelink errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(TracelinkError):
    """Raised when configuration is invalid or conflicting."""
    pass


class ValidationError(TracelinkError):
    """Raised when a value handed to the public API fails validation."""
    pass


class ScopeStackCorruption(TracelinkError):
    """Raised (in debug mode only) when scopes are popped out of order."""
    pass
