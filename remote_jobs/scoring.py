"""Score jobs against a resume profile: heuristic tier plus optional AI tier."""
from __future__ import annotations

import json
import re
from dataclasses import replace

from remote_jobs.config import HeuristicWeights
from remote_jobs.errors import ScoringError
from remote_jobs.llm import TextCompletion
from remote_jobs.log import get_logger
from remote_jobs.models import Job, ResumeProfile, ScoredJob

log = get_logger(__name__)

COMPLETE_MATCH = 100
_NONE_MARKERS = {"none", "n/a", "nothing"}


def _normalize(s: str) -> str:
    return (s or "").lower().strip()


def _contains_term(text: str, term: str) -> bool:
    """Whole-term match, so "java" does not hit "javascript"."""
    return re.search(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])", text) is not None


# ── Heuristic tier ───────────────────────────────────────────────────────


class HeuristicScorer:
    """Weighted blend of four 0-100 signals, capped below a perfect score.

    Signals with no profile data behind them drop out and the remaining
    weights are renormalized. Weights, cap and per-source boosts come from
    settings.
    """

    def __init__(
        self,
        weights: HeuristicWeights | None = None,
        *,
        cap: int = 95,
        source_boosts: dict[str, int] | None = None,
    ) -> None:
        self.weights = weights or HeuristicWeights()
        self.cap = cap
        self.source_boosts = {k.lower(): v for k, v in (source_boosts or {}).items()}

    @staticmethod
    def skill_signal(text: str, skills: list[str]) -> tuple[float, list[str]]:
        usable = [s for s in skills if len(s.strip()) > 2]
        if not usable:
            return 0.0, []
        matched: list[str] = []
        for skill in usable:
            low = _normalize(skill)
            squashed = re.sub(r"[^a-z0-9+#]", "", low)
            if _contains_term(text, low) or (squashed and squashed != low and _contains_term(text, squashed)):
                matched.append(skill)
        return 100.0 * len(matched) / len(usable), matched

    @staticmethod
    def role_signal(title: str, experience: list[str]) -> float:
        title_words = [w for w in _normalize(title).split() if len(w) > 2]
        best = 0.0
        for exp in experience:
            exp_words = [w for w in _normalize(exp).split() if len(w) > 2]
            if not exp_words:
                continue
            hits = [w for w in exp_words if any(w in t or t in w for t in title_words)]
            best = max(best, 100.0 * len(hits) / len(exp_words))
        return min(best, 100.0)

    @staticmethod
    def industry_signal(text: str, industries: list[str]) -> float:
        return 100.0 if any(len(i) > 2 and _normalize(i) in text for i in industries) else 0.0

    @staticmethod
    def responsibility_signal(text: str, responsibilities: list[str]) -> float:
        hits = 0
        for resp in responsibilities:
            hits += sum(1 for word in _normalize(resp).split() if len(word) > 3 and word in text)
        return min(100.0, 100.0 * hits / max(len(responsibilities) * 2, 1))

    def score(self, job: Job, profile: ResumeProfile) -> ScoredJob:
        text = f"{_normalize(job.title)} {_normalize(job.description)}"
        skills = ResumeProfile.texts(profile.technical_skills)
        experience = ResumeProfile.texts(profile.work_experience)
        industries = ResumeProfile.texts(profile.industries)
        responsibilities = ResumeProfile.texts(profile.responsibilities)

        parts: list[tuple[str, float, float]] = []  # (name, signal 0-100, weight)
        matched: list[str] = []
        if skills:
            signal, matched = self.skill_signal(text, skills)
            parts.append(("skills", signal, self.weights.skills))
        if experience:
            parts.append(("role", self.role_signal(job.title, experience), self.weights.role))
        if industries:
            parts.append(("industry", self.industry_signal(text, industries), self.weights.industry))
        if responsibilities:
            parts.append((
                "responsibilities",
                self.responsibility_signal(text, responsibilities),
                self.weights.responsibilities,
            ))

        total_weight = sum(w for _, _, w in parts)
        raw = sum(s * w for _, s, w in parts) / total_weight if total_weight else 0.0
        boost = self.source_boosts.get(_normalize(job.source_name), 0)
        final = int(max(0, min(self.cap, round(raw) + boost)))

        detail = ", ".join(f"{name} {signal:.0f}%" for name, signal, _ in parts) or "no profile signals"
        return ScoredJob(
            job=job,
            match_percentage=final,
            matched_skills=tuple(matched),
            missing_requirements=(),
            reasoning=f"Heuristic match: {final}% ({detail})",
            tier="heuristic",
        )


# ── AI tier ──────────────────────────────────────────────────────────────

SYSTEM_PROMPT = """You compare one job posting with one candidate and rate the fit.

Rules for missingRequirements:
- List only things the job posting states as REQUIRED that the candidate does not have.
- Never list candidate skills the job does not ask for.
- Never list "nice to have", "preferred" or "bonus" items.
- If the candidate meets every requirement, return ["None"] and set matchPercentage to 100.

Respond with a single JSON object and nothing else."""

USER_TEMPLATE = """JOB: {title} at {company}
Location: {location}
Description: {description}

CANDIDATE:
- Technical skills: {skills}
- Soft skills: {soft_skills}
- Work experience: {experience}
- Industries: {industries}
- Responsibilities: {responsibilities}
- Qualifications: {qualifications}
- Education: {education}
- Seniority: {seniority}

Return JSON:
{{
  "matchPercentage": <0-100 overall fit>,
  "matchedTechnicalSkills": [...],
  "matchedSoftSkills": [...],
  "matchedExperience": [...],
  "missingRequirements": ["None"] or [required items the candidate lacks],
  "reasoning": "<one or two sentences>"
}}"""


def _join(items: list[str], limit: int) -> str:
    return ", ".join(items[:limit]) or "None"


def build_prompt(job: Job, profile: ResumeProfile) -> str:
    t = ResumeProfile.texts
    return USER_TEMPLATE.format(
        title=job.title,
        company=job.company,
        location=job.location or "Not specified",
        description=(job.description or "No description available")[:800],
        skills=_join(t(profile.technical_skills), 15),
        soft_skills=_join(t(profile.soft_skills), 8),
        experience=_join(t(profile.work_experience), 8),
        industries=_join(t(profile.industries), 5),
        responsibilities=_join(t(profile.responsibilities), 8),
        qualifications=_join(t(profile.qualifications), 5),
        education=_join(t(profile.education), 5),
        seniority=profile.seniority_level.value,
    )


def _string_list(value) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


def parse_llm_payload(text: str) -> dict:
    match = re.search(r"\{.*\}", text or "", re.DOTALL)
    if not match:
        raise ScoringError("no JSON object in AI response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ScoringError(f"invalid JSON in AI response: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ScoringError("AI response is not a JSON object")
    return data


def normalize_llm_result(job: Job, data: dict) -> ScoredJob:
    """Clamp the score and apply the complete-match rule: a missing list of
    exactly ["None"] means 100, whatever score came back."""
    try:
        pct = float(data.get("matchPercentage"))
    except (TypeError, ValueError) as exc:
        raise ScoringError("AI response has no numeric matchPercentage") from exc
    missing = _string_list(data.get("missingRequirements"))
    complete = len(missing) == 1 and missing[0].lower() in _NONE_MARKERS
    if complete:
        pct, missing = COMPLETE_MATCH, ["None"]

    matched: list[str] = []
    for key in ("matchedTechnicalSkills", "matchedSoftSkills", "matchedExperience", "matchedSkills"):
        for item in _string_list(data.get(key)):
            if item not in matched:
                matched.append(item)

    return ScoredJob(
        job=job,
        match_percentage=int(max(0, min(100, round(pct)))),
        matched_skills=tuple(matched),
        missing_requirements=tuple(missing),
        reasoning=str(data.get("reasoning") or "AI analysis completed"),
        tier="ai",
    )


class LLMScorer:
    def __init__(self, completion: TextCompletion) -> None:
        self.completion = completion

    def score(self, job: Job, profile: ResumeProfile) -> ScoredJob:
        try:
            text = self.completion.complete(SYSTEM_PROMPT, build_prompt(job, profile))
        except Exception as exc:
            raise ScoringError(f"AI call failed: {exc}") from exc
        return normalize_llm_result(job, parse_llm_payload(text))


# ── Combined ─────────────────────────────────────────────────────────────


class MatchScorer:
    """Never raises: any AI failure degrades to the heuristic score, and the
    reasoning says so."""

    def __init__(
        self,
        heuristic: HeuristicScorer | None = None,
        llm: LLMScorer | None = None,
        *,
        llm_min_heuristic: int = 0,
    ) -> None:
        self.heuristic = heuristic or HeuristicScorer()
        self.llm = llm
        self.llm_min_heuristic = llm_min_heuristic

    def _heuristic(self, job: Job, profile: ResumeProfile) -> ScoredJob:
        try:
            return self.heuristic.score(job, profile)
        except Exception as exc:
            log.exception("Heuristic scoring failed for %r", job.title)
            return ScoredJob(job=job, match_percentage=0, reasoning=f"Scoring failed: {exc}")

    def score(self, job: Job, profile: ResumeProfile) -> ScoredJob:
        basic = self._heuristic(job, profile)
        if self.llm is None:
            return basic
        if basic.match_percentage < self.llm_min_heuristic:
            return basic
        try:
            return self.llm.score(job, profile)
        except Exception as exc:
            log.warning("AI match failed for %r (%s), using heuristic %d%%", job.title, exc, basic.match_percentage)
            return replace(
                basic,
                reasoning=f"{basic.reasoning}. AI analysis unavailable ({exc}); heuristic score used.",
            )
