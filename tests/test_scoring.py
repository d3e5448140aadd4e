import json
from unittest.mock import MagicMock

import pytest

from remote_jobs.errors import ScoringError
from remote_jobs.models import ResumeProfile
from remote_jobs.scoring import (
    HeuristicScorer, LLMScorer, MatchScorer, normalize_llm_result, parse_llm_payload,
)


class StubCompletion:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def complete(self, system, user):
        self.prompts.append(user)
        if self.error:
            raise self.error
        return self.reply


def test_heuristic_score_is_bounded(make_job, profile):
    scorer = HeuristicScorer()
    perfect = make_job(
        title="Senior Software Engineer",
        description=(
            "Fintech. Python Django PostgreSQL AWS Docker. Developed REST APIs for "
            "payments. Led a team of engineers."
        ),
    )
    unrelated = make_job(title="Pastry Chef", description="Bake bread.")
    for job in (perfect, unrelated):
        result = scorer.score(job, profile)
        assert 0 <= result.match_percentage <= 95
    assert scorer.score(perfect, profile).match_percentage == 95
    assert scorer.score(unrelated, profile).match_percentage < 20


def test_heuristic_reports_matched_skills(make_job, profile):
    job = make_job(description="We use Python and AWS. JavaScript welcome.")
    result = HeuristicScorer().score(job, profile)
    assert result.matched_skills == ("Python", "AWS")
    assert result.tier == "heuristic"
    assert result.reasoning.startswith("Heuristic match:")


def test_skill_match_is_whole_term(make_job):
    profile = ResumeProfile.from_dict({"technicalSkills": ["Java"]})
    signal, matched = HeuristicScorer.skill_signal("javascript developer", ["Java"])
    assert signal == 0 and matched == []
    assert HeuristicScorer().score(make_job(description="JavaScript only"), profile).matched_skills == ()


def test_weights_renormalize_over_present_signals(make_job):
    profile = ResumeProfile.from_dict({"technicalSkills": ["Python", "Rust"]})
    result = HeuristicScorer().score(make_job(description="python"), profile)
    assert result.match_percentage == 50


def test_source_boost_is_capped(make_job, profile):
    scorer = HeuristicScorer(source_boosts={"Fake": 80})
    assert scorer.score(make_job(), profile).match_percentage == 95


def test_complete_match_forces_100(make_job):
    result = normalize_llm_result(make_job(), {
        "matchPercentage": 82,
        "matchedTechnicalSkills": ["Python"],
        "missingRequirements": ["None"],
        "reasoning": "Meets every requirement.",
    })
    assert result.match_percentage == 100
    assert result.missing_requirements == ("None",)
    assert result.tier == "ai"


def test_llm_score_is_clamped_and_lists_merged(make_job):
    result = normalize_llm_result(make_job(), {
        "matchPercentage": 140,
        "matchedTechnicalSkills": ["Python", "AWS"],
        "matchedSoftSkills": ["Communication"],
        "matchedExperience": ["Python"],
        "missingRequirements": ["Kubernetes"],
    })
    assert result.match_percentage == 100
    assert result.matched_skills == ("Python", "AWS", "Communication")
    assert result.missing_requirements == ("Kubernetes",)


def test_parse_payload_extracts_embedded_json():
    text = 'Sure! Here you go:\n```json\n{"matchPercentage": 77, "reasoning": "ok"}\n```'
    assert parse_llm_payload(text)["matchPercentage"] == 77


@pytest.mark.parametrize("text", ["", "no json here", "{not valid}", "[1, 2]"])
def test_parse_payload_rejects_garbage(text):
    with pytest.raises(ScoringError):
        parse_llm_payload(text)


def test_llm_scorer_builds_prompt(make_job, profile):
    reply = json.dumps({"matchPercentage": 88, "missingRequirements": ["Go"], "reasoning": "Close."})
    completion = StubCompletion(reply=reply)
    result = LLMScorer(completion).score(make_job(), profile)
    assert result.match_percentage == 88
    assert "Senior Python Engineer at Acme" in completion.prompts[0]
    assert "Seniority: senior" in completion.prompts[0]


def test_match_scorer_falls_back_transparently(make_job, profile):
    llm = LLMScorer(StubCompletion(error=RuntimeError("timeout")))
    result = MatchScorer(HeuristicScorer(), llm).score(make_job(), profile)
    basic = HeuristicScorer().score(make_job(), profile)
    assert result.match_percentage == basic.match_percentage
    assert result.tier == "heuristic"
    assert "AI analysis unavailable" in result.reasoning
    assert "timeout" in result.reasoning


def test_match_scorer_falls_back_on_unparseable_reply(make_job, profile):
    llm = LLMScorer(StubCompletion(reply="I think it's a good fit"))
    result = MatchScorer(HeuristicScorer(), llm).score(make_job(), profile)
    assert result.tier == "heuristic"
    assert "AI analysis unavailable" in result.reasoning


def test_match_scorer_never_raises(make_job, profile):
    heuristic = MagicMock()
    heuristic.score.side_effect = ValueError("boom")
    result = MatchScorer(heuristic).score(make_job(), profile)
    assert result.match_percentage == 0
    assert "boom" in result.reasoning


def test_llm_skipped_below_min_heuristic(make_job, profile):
    completion = StubCompletion(reply='{"matchPercentage": 99}')
    scorer = MatchScorer(HeuristicScorer(), LLMScorer(completion), llm_min_heuristic=96)
    assert scorer.score(make_job(), profile).tier == "heuristic"
    assert completion.prompts == []
