"""User-supplied post filters: salary floor, seniority, timezone.

Each predicate is a no-op when its filter field is unset, and the three run
in that order. Order of the surviving jobs is preserved.
"""
from __future__ import annotations

import re
from typing import Callable

from remote_jobs.log import get_logger
from remote_jobs.models import Job, SearchFilters
from remote_jobs.salary import DEFAULT_GBP_TO_USD, parse_salary

log = get_logger(__name__)


def _normalize(s: str) -> str:
    return (s or "").lower().strip()


def _has_word(text: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(w)}\b", text) for w in words)


# ── Salary ───────────────────────────────────────────────────────────────


def passes_salary(job: Job, floor: int | None, *, gbp_to_usd: float = DEFAULT_GBP_TO_USD) -> bool:
    """A job with no parseable salary passes: missing data is not a reason to
    drop it. Otherwise its maximum (or its only bound) must reach the floor."""
    if not floor:
        return True
    salary = parse_salary(job.salary_text, gbp_to_usd=gbp_to_usd)
    if salary is None or salary.effective_max is None:
        return True
    return salary.effective_max >= floor


# ── Seniority ────────────────────────────────────────────────────────────

_JUNIOR_TITLE = ("junior", "jr", "entry", "associate", "graduate", "intern")
_SENIOR_TITLE = ("senior", "sr", "lead", "principal", "staff")
_LEAD_TITLE = ("lead", "manager", "principal", "architect", "director", "head of")
_EXECUTIVE_TITLE = ("director", "vp", "vice president", "head of", "chief", "cto", "ceo", "cfo", "coo")


def passes_seniority(job: Job, level: str | None) -> bool:
    if not level:
        return True
    title = _normalize(job.title)
    desc = _normalize(job.description)

    if level == "entry":
        return _has_word(title, _JUNIOR_TITLE) or "entry level" in desc or "junior" in desc
    if level == "mid":
        return not (
            _has_word(title, _SENIOR_TITLE)
            or _has_word(title, _JUNIOR_TITLE)
            or _has_word(title, _EXECUTIVE_TITLE)
        )
    if level == "senior":
        return (
            _has_word(title, _SENIOR_TITLE)
            or "senior" in desc
            or bool(re.search(r"\b([5-9]|1\d)\+?\s*years", desc))
        )
    if level == "lead":
        return _has_word(title, _LEAD_TITLE)
    if level == "executive":
        return _has_word(title, _EXECUTIVE_TITLE)
    log.debug("Unknown experience level %r — not filtering", level)
    return True


# ── Timezone ─────────────────────────────────────────────────────────────

_TIMEZONE_MARKERS: dict[str, tuple[str, ...]] = {
    "us-only": ("us", "usa", "united states", "est", "edt", "pst", "pdt", "cst", "mst", "americas"),
    "europe": ("europe", "eu", "emea", "cet", "cest", "gmt", "bst", "uk"),
    "global": ("global", "worldwide", "international", "any timezone", "anywhere"),
}


def passes_timezone(job: Job, preference: str | None) -> bool:
    if not preference:
        return True
    markers = _TIMEZONE_MARKERS.get(preference)
    if markers is None:
        log.debug("Unknown timezone preference %r — not filtering", preference)
        return True
    text = f"{_normalize(job.location)} {_normalize(job.description)}"
    return _has_word(text, markers)


# ── Pipeline ─────────────────────────────────────────────────────────────


class PostFilter:
    def __init__(self, *, gbp_to_usd: float = DEFAULT_GBP_TO_USD) -> None:
        self.gbp_to_usd = gbp_to_usd

    def apply(self, jobs: list[Job], filters: SearchFilters | None) -> list[Job]:
        if filters is None:
            return list(jobs)
        steps: list[tuple[str, Callable[[Job], bool]]] = [
            ("salary", lambda j: passes_salary(j, filters.salary_floor, gbp_to_usd=self.gbp_to_usd)),
            ("seniority", lambda j: passes_seniority(j, filters.experience_level)),
            ("timezone", lambda j: passes_timezone(j, filters.timezone_preference)),
        ]
        result = list(jobs)
        for name, predicate in steps:
            before = len(result)
            result = [j for j in result if predicate(j)]
            if len(result) != before:
                log.debug("%s filter: %d -> %d jobs", name, before, len(result))
        return result
