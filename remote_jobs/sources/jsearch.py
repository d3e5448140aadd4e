"""JSearch API (RapidAPI): aggregated listings from Google for Jobs.

Subscribe at https://rapidapi.com/letscrape-6bRDu3Sgupt/api/jsearch
"""
from __future__ import annotations

from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters, parse_timestamp
from remote_jobs.salary import format_salary, to_number
from remote_jobs.sources.base import SourceAdapter, employment_type

log = get_logger(__name__)

API_HOST = "jsearch.p.rapidapi.com"
API_URL = f"https://{API_HOST}/search"


def _location(hit: dict) -> str:
    city = hit.get("job_city")
    if city:
        return f"{city}, {hit.get('job_state') or hit.get('job_country') or ''}".rstrip(", ")
    return "Remote" if hit.get("job_is_remote") else (hit.get("job_country") or "")


class JSearchSource(SourceAdapter):
    name = "JSearch"

    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None) -> list[Job]:
        credential = self._require_credential(credential)
        data = self._get_json(
            API_URL,
            params={"query": query, "page": "1", "num_pages": "2", "remote_jobs_only": "true"},
            headers={
                "X-RapidAPI-Key": credential["RAPIDAPI_KEY"],
                "X-RapidAPI-Host": API_HOST,
            },
        )
        jobs: list[Job] = []
        for hit in self._require_list(data, "data"):
            if not (hit.get("job_title") and hit.get("employer_name")):
                continue
            jobs.append(
                Job(
                    title=hit["job_title"],
                    company=hit["employer_name"],
                    location=_location(hit),
                    description=hit.get("job_description") or "",
                    url=hit.get("job_apply_link") or hit.get("job_google_link") or "",
                    salary_text=format_salary(
                        to_number(hit.get("job_min_salary")), to_number(hit.get("job_max_salary"))
                    ),
                    employment_type=employment_type(hit.get("job_employment_type")),
                    posted_at=parse_timestamp(
                        hit.get("job_posted_at_datetime_utc") or hit.get("job_posted_at_timestamp")
                    ),
                    source_name=self.name,
                    raw=hit,
                )
            )
        log.debug("JSearch q=%r returned %d jobs", query, len(jobs))
        return jobs
