"""Jobs API (RapidAPI, jobs-api14): remote-only listings, past month.

Shares the RapidAPI key with JSearch.
"""
from __future__ import annotations

from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters, parse_timestamp
from remote_jobs.sources.base import SourceAdapter, employment_type

log = get_logger(__name__)

API_HOST = "jobs-api14.p.rapidapi.com"
API_URL = f"https://{API_HOST}/list"


class RapidApiJobsSource(SourceAdapter):
    name = "RapidAPI-Jobs"

    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None) -> list[Job]:
        credential = self._require_credential(credential)
        data = self._get_json(
            API_URL,
            params={
                "query": query,
                "location": "Remote",
                "remoteOnly": "true",
                "datePosted": "month",
                "jobType": "fulltime",
                "language": "en_GB",
                "index": "0",
            },
            headers={
                "X-RapidAPI-Key": credential["RAPIDAPI_KEY"],
                "X-RapidAPI-Host": API_HOST,
            },
        )
        jobs: list[Job] = []
        for hit in self._require_list(data, "jobs"):
            if not hit.get("title"):
                continue
            url = hit.get("url") or ""
            if not url and isinstance(hit.get("jobProviders"), list) and hit["jobProviders"]:
                url = (hit["jobProviders"][0] or {}).get("url", "")
            jobs.append(
                Job(
                    title=hit["title"],
                    company=hit.get("company") or "Unknown Company",
                    location=hit.get("location") or "Remote",
                    description=hit.get("description") or "",
                    url=url,
                    salary_text=hit.get("salaryRange") or hit.get("salary") or None,
                    employment_type=employment_type(hit.get("employmentType") or hit.get("jobType")),
                    posted_at=parse_timestamp(hit.get("datePosted")),
                    source_name=self.name,
                    raw=hit,
                )
            )
        log.debug("RapidAPI-Jobs q=%r returned %d jobs", query, len(jobs))
        return jobs
