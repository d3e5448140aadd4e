"""Adzuna job search: US aggregator.

Free tier: 250 requests/day.  Sign up at https://developer.adzuna.com/
"""
from __future__ import annotations

from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters, parse_timestamp
from remote_jobs.salary import format_salary, to_number
from remote_jobs.sources.base import SourceAdapter, employment_type, strip_html

log = get_logger(__name__)

COUNTRY = "us"
BASE_URL = f"https://api.adzuna.com/v1/api/jobs/{COUNTRY}/search"


def _keywords(query: str) -> str:
    # Adzuna's "what" is a keyword match; the planner's "remote" prefix
    # belongs in "where".
    words = [w for w in query.split() if w.lower() != "remote"]
    return " ".join(words) or query


class AdzunaSource(SourceAdapter):
    name = "Adzuna"

    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None) -> list[Job]:
        credential = self._require_credential(credential)
        params: dict = {
            "app_id": credential["ADZUNA_APP_ID"],
            "app_key": credential["ADZUNA_APP_KEY"],
            "what": _keywords(query),
            "where": "remote",
            "results_per_page": 50,
            "sort_by": "relevance",
            "content-type": "application/json",
        }
        data = self._get_json(f"{BASE_URL}/1", params=params)

        jobs: list[Job] = []
        for hit in self._require_list(data, "results"):
            title = strip_html(hit.get("title"))
            if not title:
                continue
            jobs.append(
                Job(
                    title=title,
                    company=(hit.get("company") or {}).get("display_name") or "Unknown Company",
                    location=(hit.get("location") or {}).get("display_name") or "Remote",
                    description=strip_html(hit.get("description")),
                    url=hit.get("redirect_url") or "",
                    salary_text=format_salary(to_number(hit.get("salary_min")), to_number(hit.get("salary_max"))),
                    employment_type=employment_type(hit.get("contract_time")),
                    posted_at=parse_timestamp(hit.get("created")),
                    source_name=self.name,
                    raw=hit,
                )
            )
        log.debug("Adzuna q=%r returned %d jobs", params["what"], len(jobs))
        return jobs
