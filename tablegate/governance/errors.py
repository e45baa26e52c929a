"""Errors raised by the governance core."""
from typing import Optional


class MalformedPermissionEntry(ValueError):
    """A stored permission row has an invalid scope/value combination."""

    def __init__(self, message: str, entry=None):
        super().__init__(message)
        self.entry = entry


class AmbiguousQueryReference(Exception):
    """The scanner met a construct it cannot classify."""

    def __init__(self, reason: str, text: str = "", line: Optional[int] = None):
        super().__init__(f"{reason}: {text}" if text else reason)
        self.reason = reason
        self.text = text
        self.line = line


class UnknownDataSource(LookupError):
    pass


class UnknownPrincipal(LookupError):
    pass
