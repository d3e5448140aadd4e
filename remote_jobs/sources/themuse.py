"""The Muse public jobs API.

Register at https://www.themuse.com/developers/api/v2 for a key (500 req/h).
"""
from __future__ import annotations

from remote_jobs.keys import Credential
from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters, parse_timestamp
from remote_jobs.sources.base import SourceAdapter, employment_type, strip_html

log = get_logger(__name__)

API_URL = "https://www.themuse.com/api/public/jobs"

# query keyword -> Muse category
_CATEGORY_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("developer", "engineer", "programming"), "Software Engineering"),
    (("data", "analyst"), "Data Science"),
    (("manager", "product"), "Product"),
    (("design",), "Design and UX"),
)

_LEVELS = {
    "entry": "Entry Level",
    "mid": "Mid Level",
    "senior": "Senior Level",
    "lead": "management",
    "executive": "management",
}


def categories_for(query: str) -> list[str]:
    low = query.lower()
    return [cat for words, cat in _CATEGORY_KEYWORDS if any(w in low for w in words)]


class TheMuseSource(SourceAdapter):
    name = "TheMuse"

    def search(self, query: str, filters: SearchFilters | None, credential: Credential | None) -> list[Job]:
        credential = self._require_credential(credential)
        params: dict = {
            "api_key": credential["THEMUSE_API_KEY"],
            "page": 0,
            "location": "Flexible / Remote",
            "descending": "true",
        }
        cats = categories_for(query)
        if cats:
            params["category"] = cats
        if filters and filters.experience_level in _LEVELS:
            params["level"] = _LEVELS[filters.experience_level]

        data = self._get_json(API_URL, params=params)

        jobs: list[Job] = []
        for hit in self._require_list(data, "results"):
            title = hit.get("name") or ""
            if not title:
                continue
            levels = [lvl.get("name", "") for lvl in hit.get("levels") or [] if isinstance(lvl, dict)]
            jobs.append(
                Job(
                    title=title,
                    company=(hit.get("company") or {}).get("name") or "Unknown Company",
                    location="Remote",
                    description=strip_html(hit.get("contents")),
                    url=(hit.get("refs") or {}).get("landing_page") or "",
                    salary_text=None,
                    employment_type=employment_type(hit.get("type")),
                    posted_at=parse_timestamp(hit.get("publication_date")),
                    source_name=self.name,
                    raw={**hit, "level_names": levels},
                )
            )
        log.debug("TheMuse q=%r categories=%s returned %d jobs", query, cats, len(jobs))
        return jobs
