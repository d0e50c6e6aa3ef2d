"""Error taxonomy shared by counter readers, GPU backends, and the aggregator."""

from __future__ import annotations

import errno
from enum import Enum


class ErrorKind(str, Enum):
    UNAVAILABLE = "Unavailable"
    PARSE_FAILURE = "ParseFailure"
    PERMISSION_DENIED = "PermissionDenied"


class ReadError(Exception):
    """A counter source could not be read or did not have the expected layout."""

    def __init__(self, kind: ErrorKind, source: str, message: str = "") -> None:
        self.kind = kind
        self.source = source
        self.message = message
        detail = f": {message}" if message else ""
        super().__init__(f"{kind.value} {source}{detail}")

    @classmethod
    def from_os_error(cls, exc: OSError, source: str) -> "ReadError":
        if isinstance(exc, PermissionError) or exc.errno in (errno.EACCES, errno.EPERM):
            return cls(ErrorKind.PERMISSION_DENIED, source, str(exc))
        return cls(ErrorKind.UNAVAILABLE, source, str(exc))


class BackendUnavailable(Exception):
    """Raised while constructing a GPU backend that cannot serve this host."""


class AggregateError(Exception):
    """One domain failed its read step, so the whole cycle is discarded."""

    def __init__(self, domain: str, cause: ReadError) -> None:
        self.domain = domain
        self.cause = cause
        super().__init__(f"{domain} update failed: {cause}")


class InitializationError(Exception):
    """A mandatory subsystem could not be started."""

    def __init__(self, subsystem: str, cause: Exception | None = None) -> None:
        self.subsystem = subsystem
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"failed to initialize {subsystem} monitor{detail}")
