import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from remote_jobs.config import SearchSettings, SourceSettings
from remote_jobs.models import Job, ResumeProfile
from remote_jobs.sources.base import SourceAdapter


class ManualClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeAdapter(SourceAdapter):
    """Plays back a script: each call pops the next list of jobs or raises
    the next exception. Once the script runs out it keeps returning the
    default."""

    def __init__(self, name, script=(), default=None, requires_credential=True):
        super().__init__(session=object(), timeout=1)
        self.name = name
        self.requires_credential = requires_credential
        self.script = list(script)
        self.default = default if default is not None else []
        self.calls = []

    def search(self, query, filters, credential):
        self.calls.append((query, credential.label if credential else None))
        outcome = self.script.pop(0) if self.script else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return list(outcome)


def _job(title="Senior Python Engineer", company="Acme", **kw):
    defaults = dict(
        location="Remote",
        description="Remote role building Python and Django APIs on AWS with PostgreSQL and Docker.",
        url="https://example.com/job",
        source_name="Fake",
    )
    defaults.update(kw)
    return Job(title=title, company=company, **defaults)


@pytest.fixture
def make_job():
    return _job


@pytest.fixture
def fake_adapter():
    return FakeAdapter


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def profile():
    return ResumeProfile.from_dict({
        "technicalSkills": ["Python", "Django", "PostgreSQL", "AWS", "Docker"],
        "softSkills": ["Communication"],
        "workExperience": [{"jobTitle": "Senior Software Engineer", "company": "Initech"}],
        "industries": ["Fintech"],
        "responsibilities": ["Developed REST APIs for payments", "Led a team of engineers"],
        "seniorityLevel": "senior",
    })


@pytest.fixture
def settings():
    """Two fake sources, no pauses, low threshold."""
    return SearchSettings(
        match_threshold=40,
        query_delay=0,
        source_delay=0,
        sources=(
            SourceSettings("Alpha", weight=50, max_queries=2),
            SourceSettings("Beta", weight=50, max_queries=2),
        ),
    )
