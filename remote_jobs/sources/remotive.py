"""Remotive: free API for remote tech jobs (no API key required).

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters, parse_timestamp
from remote_jobs.sources.base import SourceAdapter, employment_type, strip_html

log = get_logger(__name__)

API_URL = "https://remotive.com/api/remote-jobs"

# Remotive matches short, broad terms far better than full role titles.
_GENERIC = {
    "remote", "senior", "junior", "lead", "staff", "principal", "manager",
    "engineer", "developer", "specialist", "consultant", "ii", "iii", "iv",
}


def search_term(query: str) -> str:
    words = query.lower().split()
    distinctive = [w for w in words if w not in _GENERIC]
    if distinctive:
        return " ".join(distinctive[:2])
    return words[-1] if words else "engineer"


class RemotiveSource(SourceAdapter):
    name = "Remotive"
    requires_credential = False

    def __init__(self, *args, limit: int = 50, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.limit = limit

    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None = None) -> list[Job]:
        term = search_term(query)
        data = self._get_json(API_URL, params={"search": term, "limit": self.limit})

        jobs: list[Job] = []
        for hit in self._require_list(data, "jobs"):
            title = hit.get("title") or ""
            if not title:
                continue
            desc = strip_html(hit.get("description"))
            tags = hit.get("tags") or []
            if tags:
                desc += " " + " ".join(str(t) for t in tags)
            jobs.append(
                Job(
                    title=title,
                    company=hit.get("company_name") or "Unknown Company",
                    location=hit.get("candidate_required_location") or "Remote",
                    description=desc,
                    url=hit.get("url") or "",
                    salary_text=(hit.get("salary") or "").strip() or None,
                    employment_type=employment_type(hit.get("job_type")),
                    posted_at=parse_timestamp(hit.get("publication_date")),
                    source_name=self.name,
                    raw=hit,
                )
            )
        log.debug("Remotive search=%r returned %d jobs", term, len(jobs))
        return jobs
