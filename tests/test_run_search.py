import json

import run_search
from remote_jobs.events import SearchComplete, SearchError, SearchStarted


class StubOrchestrator:
    def __init__(self, events):
        self.events = events
        self.calls = []

    def search(self, profile, filters):
        self.calls.append((profile, filters))
        return iter(self.events)


def write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_prints_json_lines_and_succeeds(tmp_path, monkeypatch, capsys):
    stub = StubOrchestrator([SearchStarted("go"), SearchComplete((), 1.0, {})])
    monkeypatch.setattr(run_search.SearchOrchestrator, "from_settings", lambda settings: stub)
    profile = write(tmp_path, "profile.yaml", "technicalSkills: [Python]\n")
    filters = write(tmp_path, "filters.json", '{"salaryFloor": "90k"}')

    assert run_search.main([str(profile), "--filters", str(filters), "--threshold", "50"]) == 0
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [line["type"] for line in lines] == ["search_started", "search_complete"]
    assert stub.calls[0][1].salary_floor == 90000


def test_error_event_sets_exit_status(tmp_path, monkeypatch):
    stub = StubOrchestrator([SearchStarted("go"), SearchError("nothing", code="NO_RESULTS")])
    monkeypatch.setattr(run_search.SearchOrchestrator, "from_settings", lambda settings: stub)
    profile = write(tmp_path, "profile.yaml", "technicalSkills: [Python]\n")
    assert run_search.main([str(profile)]) == 1


def test_unreadable_profile(tmp_path):
    assert run_search.main([str(tmp_path / "missing.yaml")]) == 2


def test_scalar_profile_fields_are_accepted(tmp_path, monkeypatch):
    stub = StubOrchestrator([SearchStarted("go"), SearchComplete((), 1.0, {})])
    monkeypatch.setattr(run_search.SearchOrchestrator, "from_settings", lambda settings: stub)
    profile = write(tmp_path, "profile.yaml", "technicalSkills: 5\nworkExperience: Engineer\n")
    assert run_search.main([str(profile)]) == 0
    assert [e.text for e in stub.calls[0][0].technical_skills] == ["5"]
