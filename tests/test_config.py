import pytest

from remote_jobs.config import DEFAULT_SOURCES, SearchSettings, load_settings, settings_from_dict
from remote_jobs.errors import ConfigurationError


def test_defaults_match_source_priority():
    names = [s.name for s in DEFAULT_SOURCES]
    assert names[:3] == ["JSearch", "Adzuna", "TheMuse"]
    settings = SearchSettings()
    assert settings.source("theirstack").max_queries == 3
    assert settings.source("Reed").query_delay == 0.3
    assert settings.match_threshold == 70


@pytest.mark.parametrize("size,expected", [(1, 2), (4, 4), (20, 8)])
def test_batch_size_is_clamped(size, expected):
    assert SearchSettings(score_batch_size=size).batch_size == expected


def test_settings_from_dict_overlays():
    settings = settings_from_dict({
        "match_threshold": 80,
        "heuristic": {"skills": 0.5},
        "source_boosts": {"Remotive": "5"},
        "sources": ["Remotive", {"name": "Reed", "max_queries": 2}],
        "bogus": 1,
    })
    assert settings.match_threshold == 80
    assert settings.heuristic.skills == 0.5
    assert settings.heuristic.role == 0.30
    assert settings.source_boosts == {"Remotive": 5}
    assert [s.name for s in settings.sources] == ["Remotive", "Reed"]
    assert settings.source("Reed").max_queries == 2


def test_invalid_source_entry():
    with pytest.raises(ConfigurationError):
        settings_from_dict({"sources": [{"weight": 3}]})


def test_load_settings_file_and_env(tmp_path, monkeypatch):
    path = tmp_path / "search.yaml"
    path.write_text("match_threshold: 60\nquery_delay: 0\n", encoding="utf-8")
    monkeypatch.setenv("MATCH_THRESHOLD", "75")
    settings = load_settings(path)
    assert settings.match_threshold == 75
    assert settings.query_delay == 0


def test_missing_explicit_settings_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "missing.yaml")
