"""Exception taxonomy for the lifelog sync engine.

Three kinds of failure are distinguished:

    ConfigurationError      — a descriptor entry is missing or invalid (unknown
                              source key, missing calendar id, missing property
                              mapping).  Fatal to the operation attempting it.
    DataError               — one record is malformed or missing a field.  The
                              orchestrator records it and moves on.
    TransientTransportError — a dependency answered 429/5xx or the connection
                              failed.  Retried with backoff; surfaces as
                              DataError once retries run out.
"""

from __future__ import annotations


class LifelogError(Exception):
    """Base class for every error raised by the sync engine."""


class ConfigurationError(LifelogError):
    """Raised when static configuration is missing or invalid."""


class DataError(LifelogError):
    """Raised when a single record cannot be processed."""


class TransientTransportError(LifelogError):
    """Raised by store/calendar clients on rate-limit, server or connection errors.

    Attributes:
        status_code:  HTTP status returned by the dependency, if any.
        retry_after:  Server-suggested wait in seconds (``Retry-After``), if any.
        request_sent: True when the connection broke after the request went out,
                      so the dependency may already have applied it.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
        request_sent: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.request_sent = request_sent
