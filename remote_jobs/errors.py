"""Error taxonomy for the search pipeline.

Only ``SessionError`` is ever visible to a caller; the rest are caught and
logged where they happen.
"""
from __future__ import annotations

from enum import Enum


class JobSearchError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(JobSearchError):
    """Missing or invalid credentials for a source. The source is skipped."""


class SourceErrorKind(str, Enum):
    NETWORK = "network"
    AUTH_EXPIRED = "auth_expired"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RESPONSE = "malformed_response"


class SourceError(JobSearchError):
    """One adapter call failed (transport, HTTP status or payload shape)."""

    def __init__(
        self,
        kind: SourceErrorKind,
        detail: str,
        *,
        source: str = "",
        status: int | None = None,
    ) -> None:
        self.kind = kind
        self.detail = detail
        self.source = source
        self.status = status
        prefix = f"{source}: " if source else ""
        code = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{prefix}{kind.value}{code}: {detail}")


class ExhaustionError(JobSearchError):
    """A source's quota is used up for the rest of the reset window."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source} exhausted: {reason}")


class ScoringError(JobSearchError):
    """The LLM scoring tier failed or returned something unusable."""


class SessionError(JobSearchError):
    """A search session cannot produce results; the message is user-facing."""

    def __init__(self, message: str, code: str = "SESSION_ERROR") -> None:
        self.code = code
        super().__init__(message)
