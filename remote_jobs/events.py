"""Events a search session emits, in wire-ready shape via ``to_dict``.

``search_started`` is always first; exactly one ``search_complete`` or
``error`` is always last.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from remote_jobs.models import ScoredJob


@dataclass(frozen=True)
class SearchStarted:
    message: str
    sources: tuple[str, ...] = ()
    type: str = field(default="search_started", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "sources": list(self.sources)}


@dataclass(frozen=True)
class JobsFound:
    jobs: tuple[ScoredJob, ...]
    source: str
    progress_percent: int
    type: str = field(default="jobs_found", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "jobs": [j.to_dict() for j in self.jobs],
            "source": self.source,
            "progressPercent": self.progress_percent,
        }


@dataclass(frozen=True)
class ProgressUpdate:
    message: str
    percent: int
    type: str = field(default="progress_update", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "percent": self.percent}


@dataclass(frozen=True)
class UserMessage:
    """Source-health advisory for the user (e.g. a source is out of quota)."""

    message: str
    source: str = ""
    level: str = "warning"
    type: str = field(default="user_message", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "source": self.source, "level": self.level}


@dataclass(frozen=True)
class SearchComplete:
    all_jobs: tuple[ScoredJob, ...]
    elapsed_seconds: float
    source_health_report: dict[str, Any]
    cancelled: bool = False
    type: str = field(default="search_complete", init=False)

    @property
    def total_jobs(self) -> int:
        return len(self.all_jobs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "allJobs": [j.to_dict() for j in self.all_jobs],
            "totalJobs": self.total_jobs,
            "elapsedSeconds": self.elapsed_seconds,
            "sourceHealthReport": self.source_health_report,
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class SearchError:
    message: str
    code: str = "SEARCH_ERROR"
    type: str = field(default="error", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message, "code": self.code}
