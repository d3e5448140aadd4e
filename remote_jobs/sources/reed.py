"""Reed.co.uk jobseeker API (UK).

Key from https://www.reed.co.uk/developers/jobseeker ; HTTP basic auth with
the key as username and an empty password.
"""
from __future__ import annotations

from datetime import datetime, timezone

from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters, parse_timestamp
from remote_jobs.salary import currency_symbol, format_salary, to_number
from remote_jobs.sources.base import SourceAdapter, employment_type

log = get_logger(__name__)

API_URL = "https://www.reed.co.uk/api/1.0/search"


def _posted(value) -> datetime | None:
    """Reed dates are dd/mm/yyyy."""
    try:
        return datetime.strptime(str(value), "%d/%m/%Y").replace(tzinfo=timezone.utc)
    except ValueError:
        return parse_timestamp(value)


class ReedSource(SourceAdapter):
    name = "Reed"

    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None) -> list[Job]:
        credential = self._require_credential(credential)
        keywords = " ".join(w for w in query.split() if w.lower() != "remote") or query
        data = self._get_json(
            API_URL,
            params={
                "keywords": keywords,
                "locationName": "Remote",
                "distanceFromLocation": 0,
                "resultsToTake": 50,
            },
            auth=(credential["REED_API_KEY"], ""),
            headers={"User-Agent": "remote-jobs/0.3"},
        )

        jobs: list[Job] = []
        for hit in self._require_list(data, "results"):
            title = hit.get("jobTitle") or ""
            if not title:
                continue
            salary = None
            if hit.get("maximumSalary") or hit.get("minimumSalary"):
                salary = format_salary(
                    to_number(hit.get("minimumSalary")),
                    to_number(hit.get("maximumSalary")),
                    symbol=currency_symbol(hit.get("currency") or "GBP"),
                )
            jobs.append(
                Job(
                    title=title,
                    company=hit.get("employerName") or "Unknown Company",
                    location=hit.get("locationName") or "Remote",
                    description=hit.get("jobDescription") or "",
                    url=hit.get("jobUrl") or "",
                    salary_text=salary,
                    employment_type=employment_type(hit.get("employmentType")),
                    posted_at=_posted(hit.get("date") or hit.get("datePosted")),
                    source_name=self.name,
                    raw=hit,
                )
            )
        log.debug("Reed keywords=%r returned %d jobs", keywords, len(jobs))
        return jobs
