"""Exceptions raised for configuration errors.

Malformed HTML is never an error: the parser repairs it and records parse
errors instead of raising. Everything here signals a programming error at the
call site and is raised immediately.
"""

from __future__ import annotations


class SafeHTMLError(Exception):
    """Base class for safehtml errors."""


class InvalidCallbackError(SafeHTMLError, TypeError):
    def __init__(self, tag: str, callback: object) -> None:
        self.tag = tag
        self.callback = callback
        super().__init__(f"Callback for <{tag}> must be callable, got {type(callback).__name__}")


class InvalidVariableError(SafeHTMLError, TypeError):
    """Raised when a JS variable name or value cannot be registered."""

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        super().__init__(message if message is not None else f"Invalid value provided for JS variable {name}")
