import threading

import pytest

from remote_jobs.cache import ResultCache
from remote_jobs.config import SearchSettings, SourceSettings
from remote_jobs.errors import SourceError, SourceErrorKind
from remote_jobs.keys import Credential, KeyRotationRegistry
from remote_jobs.models import ResumeProfile, SearchFilters
from remote_jobs.orchestrator import SearchOrchestrator, SessionState
from remote_jobs.scoring import HeuristicScorer, LLMScorer, MatchScorer
from remote_jobs.sources.base import SourceAdapter

STRONG_DESCRIPTION = (
    "Remote. Fintech. Python Django PostgreSQL AWS Docker. Developed REST APIs "
    "for payments. Led a team of engineers."
)


def rate_limited():
    return SourceError(SourceErrorKind.RATE_LIMITED, "Too Many Requests", status=429)


def creds(source, n=1):
    return [Credential(source, f"key-{i}", {"KEY": "x"}) for i in range(1, n + 1)]


def make_registry(clock, **sources):
    return KeyRotationRegistry({name: creds(name, n) for name, n in sources.items()}, clock=clock)


def build(adapters, registry, settings, **kwargs):
    kwargs.setdefault("sleep", lambda seconds: None)
    return SearchOrchestrator(adapters, registry, settings=settings, **kwargs)


def types(events):
    return [e.type for e in events]


def test_streams_incrementally_and_ends_sorted(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[make_job(company="Alpha Co", source_name="Alpha")])
    beta = fake_adapter("Beta", default=[
        make_job(title="Senior Software Engineer", company="Beta Co", description=STRONG_DESCRIPTION, source_name="Beta"),
    ])
    orch = build([alpha, beta], make_registry(clock, Alpha=1, Beta=1), settings)
    session = orch.search(profile)
    events = list(session)

    assert events[0].type == "search_started"
    assert events[-1].type == "search_complete"
    assert types(events).count("search_complete") == 1
    found = [e for e in events if e.type == "jobs_found"]
    assert [(e.source, e.progress_percent) for e in found] == [("Alpha", 25), ("Beta", 75)]
    # second query repeats the same posting; dedupe keeps the first only
    assert len(alpha.calls) == 2 and len(found[0].jobs) == 1

    final = events[-1]
    assert [s.job.company for s in final.all_jobs] == ["Beta Co", "Alpha Co"]
    assert final.total_jobs == 2
    assert final.all_jobs[0].match_percentage == 95
    assert final.source_health_report["Alpha"]["queries"] == 2
    assert session.state is SessionState.COMPLETED


def test_events_serialize_to_wire_shape(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[make_job(source_name="Alpha")])
    orch = build([alpha], make_registry(clock, Alpha=1), settings)
    final = list(orch.search(profile))[-1].to_dict()
    assert final["type"] == "search_complete"
    job = final["allJobs"][0]
    assert job["source"] == "Alpha"
    assert job["matchPercentage"] >= 40
    assert set(job) >= {"title", "company", "link", "salary", "matchedSkills", "missingRequirements", "reasoning"}


def test_credential_rotation_scenario(fake_adapter, make_job, profile, clock):
    settings = SearchSettings(
        match_threshold=40, query_delay=0, source_delay=0,
        sources=(SourceSettings("Adzuna", max_queries=3),),
    )
    adzuna = fake_adapter("Adzuna", script=[
        rate_limited(),
        [make_job(company="One")],
        [make_job(company="Two")],
        [make_job(company="Three")],
    ])
    registry = make_registry(clock, Adzuna=2)
    events = list(build([adzuna], registry, settings).search(profile))

    assert [label for _, label in adzuna.calls] == ["key-1", "key-2", "key-2", "key-2"]
    assert registry.health("Adzuna").status.value == "healthy"
    assert events[-1].type == "search_complete"
    assert events[-1].total_jobs == 3


class SharedKeyAdapter(SourceAdapter):
    """key-1 is over quota; both sessions reach it before either sees the 429."""

    name = "Adzuna"

    def __init__(self, jobs, parties):
        super().__init__(session=object(), timeout=1)
        self.jobs = jobs
        self.barrier = threading.Barrier(parties)
        self.calls = []
        self._lock = threading.Lock()

    def search(self, query, filters, credential):
        with self._lock:
            self.calls.append(credential.label)
        if credential.label == "key-1":
            self.barrier.wait(timeout=5)
            raise rate_limited()
        return list(self.jobs)


def test_concurrent_sessions_share_one_registry(make_job, profile, clock):
    settings = SearchSettings(
        match_threshold=40, query_delay=0, source_delay=0,
        sources=(SourceSettings("Adzuna", max_queries=1),),
    )
    adzuna = SharedKeyAdapter([make_job(company="Shared", source_name="Adzuna")], parties=2)
    registry = make_registry(clock, Adzuna=2)
    orch = build([adzuna], registry, settings)
    results = {}

    def run(label):
        results[label] = list(orch.search(profile))

    threads = [threading.Thread(target=run, args=(n,)) for n in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert sorted(adzuna.calls) == ["key-1", "key-1", "key-2", "key-2"]
    assert registry.get_credential("Adzuna").label == "key-2"
    assert not registry.is_exhausted("Adzuna")
    # each session dedupes against its own seen set only
    for events in results.values():
        assert events[-1].type == "search_complete"
        assert [s.job.company for s in events[-1].all_jobs] == ["Shared"]


def test_exhausted_source_is_short_circuited(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=rate_limited())
    beta = fake_adapter("Beta", default=[make_job(source_name="Beta")])
    registry = make_registry(clock, Alpha=1, Beta=1)
    orch = build([alpha, beta], registry, settings)

    events = list(orch.search(profile))
    assert len(alpha.calls) == 1
    advisories = [e for e in events if e.type == "user_message"]
    assert advisories and advisories[0].source == "Alpha"
    assert "usage limit" in advisories[0].message
    assert events[-1].source_health_report["Alpha"]["status"] == "exhausted"

    # a later session in the same window never touches the network for Alpha
    list(orch.search(profile))
    assert len(alpha.calls) == 1

    orch.reset_health("Alpha")
    list(orch.search(profile))
    assert len(alpha.calls) == 2


def test_zero_results_fail_with_guidance(fake_adapter, profile, settings, clock):
    adapters = [fake_adapter("Alpha"), fake_adapter("Beta")]
    session = build(adapters, make_registry(clock, Alpha=1, Beta=1), settings).search(profile)
    events = list(session)
    assert events[-1].type == "error"
    assert "broadening" in events[-1].message
    assert events[-1].code == "NO_RESULTS"
    assert session.state is SessionState.FAILED


def test_partial_source_failure(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=SourceError(SourceErrorKind.NETWORK, "ConnectionError"))
    beta = fake_adapter("Beta", default=[make_job(company="Beta Co", source_name="Beta")])
    events = list(build([alpha, beta], make_registry(clock, Alpha=1, Beta=1), settings).search(profile))

    final = events[-1]
    assert final.type == "search_complete"
    assert final.total_jobs == 1
    assert {s.job.source_name for s in final.all_jobs} == {"Beta"}
    alpha_report = final.source_health_report["Alpha"]
    assert alpha_report["healthy"] is False
    assert alpha_report["errors"] == 2
    assert final.source_health_report["Beta"]["healthy"] is True


def test_unexpected_adapter_exception_is_contained(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", script=[KeyError("job_title")], default=[make_job(source_name="Alpha")])
    events = list(build([alpha], make_registry(clock, Alpha=1), settings).search(profile))
    assert events[-1].type == "search_complete"
    assert len(alpha.calls) == 2


@pytest.mark.parametrize("bad_profile", [None, ResumeProfile(), ResumeProfile.from_dict({"softSkills": ["Kind"]})])
def test_precondition_failure(fake_adapter, settings, clock, bad_profile):
    alpha = fake_adapter("Alpha")
    session = build([alpha], make_registry(clock, Alpha=1), settings).search(bad_profile)
    events = list(session)
    assert types(events) == ["search_started", "error"]
    assert events[-1].code == "INVALID_PROFILE"
    assert alpha.calls == []
    assert session.state is SessionState.FAILED


def test_cancel_stops_new_work_and_still_terminates(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[make_job(source_name="Alpha")])
    beta = fake_adapter("Beta", default=[make_job(company="Other", source_name="Beta")])
    session = build([alpha, beta], make_registry(clock, Alpha=1, Beta=1), settings).search(profile)

    events = []
    for event in session:
        events.append(event)
        if event.type == "jobs_found":
            session.cancel()

    assert len(alpha.calls) == 1
    assert beta.calls == []
    assert events[-1].type == "search_complete"
    assert events[-1].cancelled is True
    assert events[-1].total_jobs == 1
    assert session.state is SessionState.CANCELLED


def test_close_stops_the_stream(fake_adapter, profile, settings, clock):
    alpha = fake_adapter("Alpha")
    session = build([alpha], make_registry(clock, Alpha=1), settings).search(profile)
    assert next(session).type == "search_started"
    session.close()
    assert session.state is SessionState.CANCELLED
    assert alpha.calls == []
    with pytest.raises(StopIteration):
        next(session)


def test_threshold_gate(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[
        make_job(source_name="Alpha"),
        make_job(title="Pastry Chef", company="Bakery", description="Remote. Bake bread.", source_name="Alpha"),
    ])
    events = list(build([alpha], make_registry(clock, Alpha=1), settings).search(profile))
    assert [s.job.title for s in events[-1].all_jobs] == ["Senior Python Engineer"]


def test_filters_apply_before_scoring(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[
        make_job(company="Cheap", salary_text="$40k", source_name="Alpha"),
        make_job(company="Unknown pay", salary_text=None, source_name="Alpha"),
        make_job(company="Office", location="Denver, CO", description="On-site only.", source_name="Alpha"),
    ])
    orch = build([alpha], make_registry(clock, Alpha=1), settings)
    events = list(orch.search(profile, SearchFilters(salary_floor=100000)))
    assert [s.job.company for s in events[-1].all_jobs] == ["Unknown pay"]


def test_complete_match_reaches_caller_as_100(fake_adapter, make_job, profile, settings, clock):
    class Completion:
        def complete(self, system, user):
            return '{"matchPercentage": 61, "missingRequirements": ["None"], "reasoning": "All met."}'

    scorer = MatchScorer(HeuristicScorer(), LLMScorer(Completion()))
    alpha = fake_adapter("Alpha", default=[make_job(source_name="Alpha")])
    events = list(build([alpha], make_registry(clock, Alpha=1), settings, scorer=scorer).search(profile))
    scored = events[-1].all_jobs[0]
    assert scored.match_percentage == 100
    assert scored.tier == "ai"


def test_unconfigured_source_is_skipped_with_notice(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[make_job(source_name="Alpha")])
    beta = fake_adapter("Beta")
    events = list(build([alpha, beta], make_registry(clock, Alpha=1), settings).search(profile))
    notices = [e for e in events if e.type == "user_message"]
    assert [(n.source, n.level) for n in notices] == [("Beta", "info")]
    assert beta.calls == []
    assert events[-1].type == "search_complete"


def test_pacing_between_queries_and_sources(fake_adapter, make_job, profile, clock):
    settings = SearchSettings(
        match_threshold=40, query_delay=0.5, source_delay=1.0,
        sources=(
            SourceSettings("Alpha", max_queries=2, query_delay=0.3),
            SourceSettings("Beta", max_queries=2),
        ),
    )
    pauses = []
    adapters = [
        fake_adapter("Alpha", default=[make_job(source_name="Alpha")]),
        fake_adapter("Beta", default=[make_job(company="B", source_name="Beta")]),
    ]
    list(build(adapters, make_registry(clock, Alpha=1, Beta=1), settings, sleep=pauses.append).search(profile))
    assert pauses == [0.3, 1.0, 0.5]


def test_cache_hits_skip_network_and_health(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[make_job(source_name="Alpha")])
    registry = make_registry(clock, Alpha=1)
    cache = ResultCache(ttl=900, clock=clock)
    orch = build([alpha], registry, settings, cache=cache)

    first = list(orch.search(profile))
    calls = len(alpha.calls)
    report_before = registry.report(["Alpha"])
    second = list(orch.search(profile))

    assert len(alpha.calls) == calls
    assert registry.report(["Alpha"]) == report_before
    # the seen set is per session, so the repeat search still finds the job
    assert second[-1].total_jobs == first[-1].total_jobs == 1
    assert second[-1].source_health_report["Alpha"]["cacheHits"] == 2

    assert orch.clear_cache() == 2
    list(orch.search(profile))
    assert len(alpha.calls) == calls * 2


def test_source_health_admin_view(fake_adapter, settings, clock):
    orch = build([fake_adapter("Alpha"), fake_adapter("Beta")], make_registry(clock, Alpha=2), settings)
    health = orch.source_health()
    assert set(health) == {"Alpha", "Beta"}
    assert health["Alpha"]["credentials"] == 2
    assert health["Beta"]["credentials"] == 0


def test_disabled_cache_does_not_break_the_session(fake_adapter, make_job, profile, settings, clock):
    alpha = fake_adapter("Alpha", default=[make_job(source_name="Alpha")])
    orch = build([alpha], make_registry(clock, Alpha=1), settings, cache=ResultCache(max_size=0, clock=clock))
    events = list(orch.search(profile))
    assert events[-1].type == "search_complete"
    assert events[-1].total_jobs == 1


def test_from_settings_drops_a_zero_size_cache(monkeypatch, clock):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    settings = SearchSettings(cache_size=0, sources=(SourceSettings("Remotive"),))
    orch = SearchOrchestrator.from_settings(settings, registry=make_registry(clock, Remotive=1))
    assert orch.cache is None
    assert orch.clear_cache() == 0


def test_from_settings_registers_keyless_adapters_from_their_flag(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    settings = SearchSettings(sources=(SourceSettings("Remotive"), SourceSettings("Reed")))
    orch = SearchOrchestrator.from_settings(settings, env_getter=lambda key, default="": default)
    health = orch.source_health()
    assert health["Remotive"]["credentials"] == 1
    assert orch.registry.get_credential("Remotive").label == "public"
    assert health["Reed"]["credentials"] == 0
