"""Best-effort remote-work detection.

Many remote-only boards omit the word "remote" entirely, so a blank or vague
location on a generic knowledge-work title also counts. Explicit on-site
language always wins. Expect false positives; this is a heuristic.
"""
from __future__ import annotations

from remote_jobs.models import Job

REMOTE_KEYWORDS: tuple[str, ...] = (
    "remote", "work from home", "wfh", "anywhere", "distributed", "virtual",
    "worldwide", "global", "telecommute", "home-based", "home based",
    "location independent", "work remotely", "flexible location",
)

# Vetoes: any of these and the posting is treated as on-site.
ON_SITE_PHRASES: tuple[str, ...] = (
    "on-site only", "onsite only", "office required", "relocation required",
    "must relocate", "in-office only", "no remote",
)

AMBIGUOUS_LOCATIONS: frozenset[str] = frozenset({
    "", "n/a", "na", "none", "unknown", "not specified", "various",
    "multiple locations", "multiple", "flexible", "tbd", "see description",
})

KNOWLEDGE_WORK_TITLES: tuple[str, ...] = ("engineer", "developer", "analyst", "designer")

# Descriptions are long; the remote signal is almost always near the top.
_DESCRIPTION_SCAN_CHARS = 1500


def _normalize(s: str) -> str:
    return (s or "").lower().strip()


def has_on_site_veto(job: Job) -> bool:
    text = " ".join(_normalize(x) for x in (job.title, job.location, job.description))
    return any(phrase in text for phrase in ON_SITE_PHRASES)


def is_remote(job: Job) -> bool:
    if has_on_site_veto(job):
        return False

    location = _normalize(job.location)
    head = " ".join((_normalize(job.title), _normalize(job.description)[:_DESCRIPTION_SCAN_CHARS]))
    if any(kw in location or kw in head for kw in REMOTE_KEYWORDS):
        return True

    title = _normalize(job.title)
    return location in AMBIGUOUS_LOCATIONS and any(t in title for t in KNOWLEDGE_WORK_TITLES)


def filter_remote(jobs: list[Job]) -> list[Job]:
    return [j for j in jobs if is_remote(j)]
