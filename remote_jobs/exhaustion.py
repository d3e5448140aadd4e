"""Classify source failures and responses as quota exhaustion or not.

Rules, first match wins:

1. HTTP 429 / 402 / 403 / 509                       -> exhausted ("HTTP <status>")
2. error text mentions a quota term (case-insensitive) -> exhausted (the term)
3. a successful but empty result set                -> suspicious
4. anything else                                    -> transient
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

import requests

from remote_jobs.errors import SourceError

EXHAUSTION_STATUSES: frozenset[int] = frozenset({429, 402, 403, 509})

# Longer phrases first so the reported reason is the most specific one.
QUOTA_TERMS: tuple[str, ...] = (
    "too many requests",
    "monthly limit",
    "api limit",
    "rate limit",
    "quota",
    "exceeded",
    "exhausted",
    "subscription",
    "insufficient",
    "billing",
    "payment",
    "credits",
    "balance",
    "limit",
    "usage",
)


class VerdictKind(str, Enum):
    OK = "ok"
    SUSPICIOUS = "suspicious"
    EXHAUSTED = "exhausted"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Verdict:
    kind: VerdictKind
    reason: str = ""

    @property
    def exhausted(self) -> bool:
        return self.kind is VerdictKind.EXHAUSTED


OK = Verdict(VerdictKind.OK)
EMPTY_RESPONSE = Verdict(VerdictKind.SUSPICIOUS, "empty response")


def _match_quota_term(text: str) -> str | None:
    low = (text or "").lower()
    for term in QUOTA_TERMS:
        if term in low:
            return term
    return None


def _response_error_text(response: requests.Response) -> str:
    """Error message fields of a JSON body, else the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or ""
    if isinstance(body, dict):
        parts = [str(body[k]) for k in ("error", "message", "detail", "errors") if body.get(k)]
        return " ".join(parts)
    return ""


class ExhaustionDetector:
    """Stateless classifier; the per-source strike count lives in the registry."""

    def classify(self, outcome: Any) -> Verdict:
        """Classify an exception, a ``requests.Response`` or a result list."""
        if isinstance(outcome, (list, tuple)):
            return self.classify_results(outcome)
        if isinstance(outcome, requests.Response):
            return self._classify_status_and_text(
                outcome.status_code,
                _response_error_text(outcome),
                successful=outcome.ok,
            )
        if isinstance(outcome, SourceError):
            return self._classify_status_and_text(outcome.status, outcome.detail)
        if isinstance(outcome, requests.HTTPError) and outcome.response is not None:
            return self.classify(outcome.response)
        if isinstance(outcome, BaseException):
            return self._classify_status_and_text(None, str(outcome))
        return Verdict(VerdictKind.TRANSIENT, f"unclassifiable outcome: {outcome!r}"[:200])

    def classify_results(self, jobs: Sequence[Any]) -> Verdict:
        return OK if jobs else EMPTY_RESPONSE

    @staticmethod
    def _classify_status_and_text(
        status: int | None, text: str, *, successful: bool = False
    ) -> Verdict:
        if status in EXHAUSTION_STATUSES:
            return Verdict(VerdictKind.EXHAUSTED, f"HTTP {status}")
        term = _match_quota_term(text)
        if term:
            return Verdict(VerdictKind.EXHAUSTED, term)
        if successful:
            return OK
        detail = (text or "").strip()[:200] or (f"HTTP {status}" if status else "unknown error")
        return Verdict(VerdictKind.TRANSIENT, detail)
