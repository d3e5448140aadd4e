"""Data models for postings, candidate profiles and search filters."""
from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Union


def parse_timestamp(value: Any) -> datetime | None:
    """Best-effort conversion of provider date fields (ISO text or epoch)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.isdigit():
        return parse_timestamp(int(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _normalize_key_part(s: str) -> str:
    return (s or "").lower().strip()


@dataclass(frozen=True)
class Job:
    """Canonical posting, as produced by a source adapter."""

    title: str
    company: str
    location: str
    description: str
    url: str
    salary_text: str | None = None
    employment_type: str = "Full-time"
    posted_at: datetime | None = None
    source_name: str = "unknown"
    raw: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def key(self) -> tuple[str, str]:
        """Identity used for de-duplication across sources and queries."""
        return (_normalize_key_part(self.title), _normalize_key_part(self.company))

    @property
    def id(self) -> str:
        return hashlib.sha256("|".join(self.key).encode()).hexdigest()[:12]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "description": self.description,
            "link": self.url,
            "salary": self.salary_text or "Salary not specified",
            "type": self.employment_type,
            "datePosted": self.posted_at.isoformat() if self.posted_at else None,
            "source": self.source_name,
        }


@dataclass(frozen=True)
class ScoredJob:
    job: Job
    match_percentage: int
    matched_skills: tuple[str, ...] = ()
    missing_requirements: tuple[str, ...] = ()
    reasoning: str = ""
    tier: str = "heuristic"

    def to_dict(self) -> dict[str, Any]:
        data = self.job.to_dict()
        data.update(
            {
                "matchPercentage": self.match_percentage,
                "matchedSkills": list(self.matched_skills),
                "missingRequirements": list(self.missing_requirements),
                "reasoning": self.reasoning,
                "scoredBy": self.tier,
            }
        )
        return data


# ── Candidate profile ────────────────────────────────────────────────────


class SeniorityLevel(str, Enum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    LEAD = "lead"
    EXECUTIVE = "executive"

    @classmethod
    def parse(cls, value: Any) -> "SeniorityLevel":
        text = _normalize_key_part(str(value or ""))
        for level in cls:
            if level.value == text:
                return level
        aliases = {
            "junior": cls.ENTRY,
            "intermediate": cls.MID,
            "principal": cls.LEAD,
            "staff": cls.LEAD,
            "director": cls.EXECUTIVE,
        }
        return aliases.get(text, cls.MID)


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class StructuredEntry:
    """A structured resume item (e.g. one job held), reduced to its title."""

    title: str
    company: str = ""
    details: str = ""

    @property
    def text(self) -> str:
        return self.title


ProfileEntry = Union[PlainText, StructuredEntry]

_TITLE_KEYS = ("jobTitle", "job_title", "title", "role", "position", "name", "skill")


def entry_from_raw(value: Any) -> ProfileEntry | None:
    """Turn one raw analyzer value into a ProfileEntry; None when empty."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        return PlainText(text) if text else None
    if isinstance(value, dict):
        title = ""
        for key in _TITLE_KEYS:
            candidate = value.get(key)
            if isinstance(candidate, str) and candidate.strip():
                title = candidate.strip()
                break
        if not title:
            strings = [v.strip() for v in value.values() if isinstance(v, str) and v.strip()]
            title = strings[0] if strings else json.dumps(value, sort_keys=True, default=str)
        company = value.get("company") or value.get("employer") or ""
        details = value.get("description") or value.get("details") or ""
        return StructuredEntry(
            title=title,
            company=str(company) if company else "",
            details=str(details) if details else "",
        )
    text = str(value).strip()
    return PlainText(text) if text else None


def _entries(raw: Any) -> tuple[ProfileEntry, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raw = [raw]
    out: list[ProfileEntry] = []
    for item in raw:
        entry = entry_from_raw(item)
        if entry is not None:
            out.append(entry)
    return tuple(out)


@dataclass(frozen=True)
class ResumeProfile:
    """Read-only candidate analysis; list order is relevance order."""

    technical_skills: tuple[ProfileEntry, ...] = ()
    soft_skills: tuple[ProfileEntry, ...] = ()
    work_experience: tuple[ProfileEntry, ...] = ()
    industries: tuple[ProfileEntry, ...] = ()
    responsibilities: tuple[ProfileEntry, ...] = ()
    qualifications: tuple[ProfileEntry, ...] = ()
    education: tuple[ProfileEntry, ...] = ()
    seniority_level: SeniorityLevel = SeniorityLevel.MID

    _FIELDS = {
        "technical_skills": ("technicalSkills", "technical_skills", "skills"),
        "soft_skills": ("softSkills", "soft_skills"),
        "work_experience": ("workExperience", "work_experience", "experience"),
        "industries": ("industries",),
        "responsibilities": ("responsibilities",),
        "qualifications": ("qualifications",),
        "education": ("education",),
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResumeProfile":
        kwargs: dict[str, Any] = {}
        for attr, keys in cls._FIELDS.items():
            for key in keys:
                if key in data:
                    kwargs[attr] = _entries(data[key])
                    break
        level = data.get("seniorityLevel", data.get("seniority_level"))
        kwargs["seniority_level"] = SeniorityLevel.parse(level)
        return cls(**kwargs)

    @staticmethod
    def texts(entries: Iterable[ProfileEntry]) -> list[str]:
        return [e.text for e in entries if e.text]

    def has_signal(self) -> bool:
        """True when there is anything to search and score with."""
        return bool(self.technical_skills or self.work_experience or self.responsibilities)


# ── Filters ──────────────────────────────────────────────────────────────

EXPERIENCE_LEVELS = ("entry", "mid", "senior", "lead", "executive")
TIMEZONE_PREFERENCES = ("us-only", "europe", "global")


def parse_salary_floor(value: Any) -> int | None:
    """Accept 100000, "100000", "100k", "$100,000"; None/blank means unset."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None
    text = str(value).lower().replace(",", "").replace("$", "").strip()
    match = re.fullmatch(r"(\d+(?:\.\d+)?)\s*(k?)\+?", text)
    if not match:
        return None
    amount = float(match.group(1)) * (1000 if match.group(2) else 1)
    return int(amount) if amount > 0 else None


@dataclass(frozen=True)
class SearchFilters:
    """Independent optional predicates. An unset field constrains nothing."""

    salary_floor: int | None = None
    experience_level: str | None = None
    timezone_preference: str | None = None
    location: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SearchFilters":
        data = data or {}

        def pick(*keys: str) -> Any:
            for k in keys:
                if data.get(k) not in (None, ""):
                    return data[k]
            return None

        experience = pick("experienceLevel", "experience_level", "experience")
        tz = pick("timezonePreference", "timezone_preference", "timezone")
        location = pick("location")
        return cls(
            salary_floor=parse_salary_floor(pick("salaryFloor", "salary_floor", "salary")),
            experience_level=str(experience).lower().strip() if experience else None,
            timezone_preference=str(tz).lower().strip() if tz else None,
            location=str(location).strip() if location else None,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "salaryFloor": self.salary_floor,
            "experienceLevel": self.experience_level,
            "timezonePreference": self.timezone_preference,
            "location": self.location,
        }
