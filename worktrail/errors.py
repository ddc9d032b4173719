from __future__ import annotations


class WorktrailError(Exception):
    """Base class for errors raised by worktrail."""


class PermissionDenied(WorktrailError):
    """The host system refused access to a source."""


class SourceUnavailable(WorktrailError):
    """A source is not configured or its backing file/path cannot be reached."""


class ParseError(WorktrailError, ValueError):
    """A timestamp, URL or record could not be parsed."""


class StoreError(WorktrailError):
    """A store constraint was violated or the store lock could not be taken."""


class ValidationError(WorktrailError, ValueError):
    """User supplied input was rejected."""


class StoreLockTimeout(StoreError):
    """The store lock could not be acquired in time."""
