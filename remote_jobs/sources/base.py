"""Common plumbing for provider adapters.

An adapter owns exactly one provider's request shape and response mapping.
It never retries and never swallows: every transport failure, bad status or
malformed payload leaves as a ``SourceError`` for the orchestrator to
classify.
"""
from __future__ import annotations

import html
import re
from abc import ABC, abstractmethod
from typing import Any

import requests

from remote_jobs.errors import SourceError, SourceErrorKind
from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters

log = get_logger(__name__)

AUTH_STATUSES = frozenset({401, 403})
RATE_STATUSES = frozenset({402, 429, 509})


def _body_error_text(body: Any) -> str:
    if isinstance(body, dict):
        parts = [str(body[k]) for k in ("error", "message", "detail", "errors") if body.get(k)]
        return " ".join(parts)[:200]
    return ""


def _error_text(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "").strip()[:200]
    return _body_error_text(body)


class SourceAdapter(ABC):
    name: str = "unknown"
    requires_credential: bool = True

    def __init__(self, session: requests.Session | None = None, timeout: float = 15.0) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    @abstractmethod
    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None) -> list[Job]:
        ...

    def _error(self, kind: SourceErrorKind, detail: str, status: int | None = None) -> SourceError:
        return SourceError(kind, detail, source=self.name, status=status)

    def _get_json(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("timeout", self.timeout)
        try:
            r = self.session.get(url, **kwargs)
        except requests.RequestException as exc:
            # Class name only: transport messages ("Max retries exceeded ...")
            # would otherwise read as quota text.
            raise self._error(SourceErrorKind.NETWORK, type(exc).__name__) from exc

        if not r.ok:
            detail = _error_text(r) or r.reason or "request failed"
            if r.status_code in AUTH_STATUSES:
                kind = SourceErrorKind.AUTH_EXPIRED
            elif r.status_code in RATE_STATUSES:
                kind = SourceErrorKind.RATE_LIMITED
            else:
                kind = SourceErrorKind.NETWORK
            raise self._error(kind, detail, status=r.status_code)

        try:
            return r.json()
        except ValueError as exc:
            raise self._error(SourceErrorKind.MALFORMED_RESPONSE, "response body is not JSON", r.status_code) from exc

    def _require_list(self, data: Any, field: str) -> list[dict]:
        """``data[field]`` as a list of dicts, else MALFORMED_RESPONSE.

        Some providers answer 200 with only a message (quota notices among
        them); that message is kept in the error detail.
        """
        items = data.get(field) if isinstance(data, dict) else None
        if not isinstance(items, list):
            detail = f"no {field!r} list in response"
            message = _body_error_text(data)
            if message:
                detail = f"{detail}: {message}"
            raise self._error(SourceErrorKind.MALFORMED_RESPONSE, detail)
        return [item for item in items if isinstance(item, dict)]

    def _require_credential(self, credential: Credential | None) -> Credential:
        if credential is None:
            raise self._error(SourceErrorKind.AUTH_EXPIRED, "no credential supplied")
        return credential

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def strip_html(text: str | None) -> str:
    return _SPACE_RE.sub(" ", html.unescape(_TAG_RE.sub(" ", text or ""))).strip()


def employment_type(value: Any, default: str = "Full-time") -> str:
    """Normalize "full_time", "FULLTIME", "Full Time" and friends."""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    text = str(value or "").strip().lower().replace("_", "").replace("-", "").replace(" ", "")
    if not text:
        return default
    known = {
        "fulltime": "Full-time",
        "parttime": "Part-time",
        "contract": "Contract",
        "contractor": "Contract",
        "temporary": "Temporary",
        "permanent": "Full-time",
        "internship": "Internship",
        "intern": "Internship",
    }
    return known.get(text, str(value).strip())
