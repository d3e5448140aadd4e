"""Stable, first-occurrence-wins de-duplication on normalized (title, company)."""
from __future__ import annotations

from typing import Iterable

from remote_jobs.models import Job


def dedupe(jobs: Iterable[Job], seen: set[tuple[str, str]] | None = None) -> list[Job]:
    """Drop jobs whose key is already in *seen* (or earlier in *jobs*).

    Pass the same *seen* set for a whole search session to suppress repeats
    across sources and queries; it is updated in place. Adapters never emit
    a posting without a title, and fill in a missing company.
    """
    if seen is None:
        seen = set()
    out: list[Job] = []
    for job in jobs:
        key = job.key
        if key in seen:
            continue
        seen.add(key)
        out.append(job)
    return out
