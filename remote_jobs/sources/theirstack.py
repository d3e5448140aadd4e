"""Theirstack job postings API.

Bearer-token auth; the free tier allows roughly 200 requests a month, so the
planner gives it fewer queries than other sources.
"""
from __future__ import annotations

from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters, parse_timestamp
from remote_jobs.salary import currency_symbol, format_salary, to_number
from remote_jobs.sources.base import SourceAdapter, employment_type

log = get_logger(__name__)

API_URL = "https://api.theirstack.com/v1/jobs/search"


def _salary(hit: dict) -> str | None:
    salary = hit.get("salary")
    if isinstance(salary, dict):
        rng = salary.get("range") or {}
        low, high = to_number(rng.get("min")), to_number(rng.get("max"))
        if low or high:
            return format_salary(low, high, symbol=currency_symbol(salary.get("currency")))
        return None
    if isinstance(salary, str) and salary.strip():
        return salary.strip()
    low, high = to_number(hit.get("min_annual_salary")), to_number(hit.get("max_annual_salary"))
    if low or high:
        return format_salary(low, high, symbol=currency_symbol(hit.get("salary_currency")))
    return None


class TheirstackSource(SourceAdapter):
    name = "Theirstack"

    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None) -> list[Job]:
        credential = self._require_credential(credential)
        data = self._get_json(
            API_URL,
            params={"query": query, "location": "Remote", "limit": 50},
            headers={
                "Authorization": f"Bearer {credential['THEIRSTACK_API_KEY']}",
                "Content-Type": "application/json",
            },
        )
        field = "jobs" if isinstance(data, dict) and "jobs" in data else "data"
        jobs: list[Job] = []
        for hit in self._require_list(data, field):
            title = hit.get("title") or hit.get("job_title") or ""
            if not title:
                continue
            company = hit.get("company")
            if isinstance(company, dict):
                company = company.get("name")
            jobs.append(
                Job(
                    title=title,
                    company=company or hit.get("company_name") or "Unknown Company",
                    location=hit.get("location") or ("Remote" if hit.get("remote") else ""),
                    description=hit.get("description") or "",
                    url=hit.get("url") or hit.get("final_url") or "",
                    salary_text=_salary(hit),
                    employment_type=employment_type(hit.get("type") or hit.get("employment_statuses")),
                    posted_at=parse_timestamp(hit.get("posted_at") or hit.get("date_posted")),
                    source_name=self.name,
                    raw=hit,
                )
            )
        log.debug("Theirstack q=%r returned %d jobs", query, len(jobs))
        return jobs
