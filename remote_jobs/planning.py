"""Turn a resume profile into a short, deterministic list of search queries."""
from __future__ import annotations

from remote_jobs.log import get_logger
from remote_jobs.models import ResumeProfile, SeniorityLevel

log = get_logger(__name__)

MIN_QUERIES = 3
MAX_QUERIES = 12

ROLE_SYNONYMS: dict[str, list[str]] = {
    "software engineer": ["remote software engineer", "remote developer", "remote backend engineer"],
    "software developer": ["remote software developer", "remote developer", "remote engineer"],
    "data scientist": ["remote data scientist", "remote data analyst", "remote analytics"],
    "data engineer": ["remote data engineer", "remote etl developer"],
    "product manager": ["remote product manager", "remote product"],
    "marketing manager": ["remote marketing manager", "remote digital marketing"],
    "project manager": ["remote project manager", "remote program manager"],
    "business analyst": ["remote business analyst", "remote analyst"],
    "ux designer": ["remote ux designer", "remote product designer"],
    "sales manager": ["remote sales manager", "remote account manager"],
    "customer success": ["remote customer success", "remote account management"],
    "devops": ["remote devops engineer", "remote cloud engineer"],
    "frontend": ["remote frontend developer", "remote react developer"],
    "backend": ["remote backend developer", "remote api developer"],
    "full stack": ["remote full stack developer", "remote web developer"],
    "head of product": ["remote head of product", "remote product director"],
    "technical lead": ["remote technical lead", "remote engineering lead"],
    "machine learning": ["remote machine learning engineer", "remote ml engineer"],
    "ai engineer": ["remote ai engineer", "remote machine learning engineer"],
}

# Fallback when no specific synonym matched a title.
GENERIC_ROLE_WORDS: dict[str, str] = {
    "engineer": "remote software engineer",
    "developer": "remote developer",
    "manager": "remote manager",
    "analyst": "remote analyst",
    "designer": "remote designer",
    "consultant": "remote consultant",
    "architect": "remote architect",
    "director": "remote director",
}

SKILL_QUERIES: dict[str, str] = {
    "javascript": "remote javascript developer",
    "typescript": "remote typescript developer",
    "python": "remote python developer",
    "java": "remote java developer",
    "go": "remote golang developer",
    "golang": "remote golang developer",
    "react": "remote react developer",
    "node.js": "remote nodejs developer",
    "nodejs": "remote nodejs developer",
    "aws": "remote cloud engineer",
    "sql": "remote data analyst",
    "tableau": "remote data analyst",
    "salesforce": "remote salesforce admin",
    "figma": "remote ux designer",
    "photoshop": "remote graphic designer",
    "postgresql": "remote database developer",
    "mongodb": "remote database developer",
    "docker": "remote devops engineer",
    "kubernetes": "remote devops engineer",
}

RESPONSIBILITY_QUERIES: dict[str, str] = {
    "developed": "remote developer",
    "built": "remote developer",
    "managed": "remote manager",
    "designed": "remote designer",
    "analyzed": "remote analyst",
    "architected": "remote architect",
    "led": "remote lead",
}

SENIORITY_QUERIES: dict[SeniorityLevel, list[str]] = {
    SeniorityLevel.ENTRY: ["remote entry level", "remote junior", "remote associate"],
    SeniorityLevel.MID: ["remote specialist", "remote professional", "remote coordinator"],
    SeniorityLevel.SENIOR: ["remote senior", "remote lead", "remote principal"],
    SeniorityLevel.LEAD: ["remote manager", "remote lead", "remote director"],
    SeniorityLevel.EXECUTIVE: ["remote director", "remote vp", "remote executive"],
}

DEFAULT_QUERIES: list[str] = ["remote software engineer", "remote developer", "remote manager"]


def _remote(phrase: str) -> str:
    phrase = " ".join(phrase.lower().split())
    return phrase if phrase.startswith("remote ") else f"remote {phrase}"


class QueryPlanner:
    """Derive 3-12 distinct queries. Same profile in, same list out."""

    def __init__(self, *, experience_entries: int = 3, skill_entries: int = 3) -> None:
        self.experience_entries = experience_entries
        self.skill_entries = skill_entries

    def plan(self, profile: ResumeProfile) -> list[str]:
        queries: list[str] = []

        def add(*items: str) -> None:
            for q in items:
                if q and q not in queries:
                    queries.append(q)

        # 1. Titles from the most relevant work experience
        for title in ResumeProfile.texts(profile.work_experience)[: self.experience_entries]:
            low = title.lower()
            matched = [qs for role, qs in ROLE_SYNONYMS.items() if role in low]
            for qs in matched:
                add(*qs)
            if not matched:
                generic = [q for word, q in GENERIC_ROLE_WORDS.items() if word in low]
                add(*generic[:1])

        # 2. Top technical skills
        for skill in ResumeProfile.texts(profile.technical_skills)[: self.skill_entries]:
            low = skill.lower().strip()
            if low in SKILL_QUERIES:
                add(SKILL_QUERIES[low])
            elif len(low) > 2 and len(low.split()) <= 3:
                add(_remote(f"{low} developer"))

        # 3. Responsibility verbs and industries
        for resp in ResumeProfile.texts(profile.responsibilities)[:5]:
            words = set(resp.lower().split())
            add(*[q for verb, q in RESPONSIBILITY_QUERIES.items() if verb in words])
        for industry in ResumeProfile.texts(profile.industries)[:2]:
            if len(industry.split()) <= 3:
                add(_remote(industry))

        # 4. Seniority fallback, then generic defaults
        if len(queries) < MIN_QUERIES:
            add(*SENIORITY_QUERIES[profile.seniority_level])
        if len(queries) < MIN_QUERIES:
            add(*DEFAULT_QUERIES)

        planned = queries[:MAX_QUERIES]
        log.info("Planned %d queries: %s", len(planned), planned)
        return planned
