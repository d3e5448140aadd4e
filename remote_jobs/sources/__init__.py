from __future__ import annotations

import requests

from remote_jobs.config import SearchSettings
from remote_jobs.log import get_logger

from .adzuna import AdzunaSource
from .base import SourceAdapter
from .jsearch import JSearchSource
from .rapidapi_jobs import RapidApiJobsSource
from .reed import ReedSource
from .remotive import RemotiveSource
from .theirstack import TheirstackSource
from .themuse import TheMuseSource

log = get_logger(__name__)

__all__ = [
    "SourceAdapter", "JSearchSource", "RapidApiJobsSource", "AdzunaSource",
    "TheMuseSource", "ReedSource", "TheirstackSource", "RemotiveSource",
    "ADAPTERS", "get_sources",
]

ADAPTERS: dict[str, type[SourceAdapter]] = {
    cls.name: cls
    for cls in (
        JSearchSource, AdzunaSource, TheMuseSource, ReedSource,
        RapidApiJobsSource, TheirstackSource, RemotiveSource,
    )
}


def get_sources(settings: SearchSettings, session: requests.Session | None = None) -> list[SourceAdapter]:
    """Adapters for ``settings.sources``, in priority order.

    Credentials are not checked here; the registry decides at search time
    whether a source can run.
    """
    session = session or requests.Session()
    sources: list[SourceAdapter] = []
    for cfg in settings.sources:
        cls = ADAPTERS.get(cfg.name)
        if cls is None:
            log.warning("Unknown source %r in settings, ignoring", cfg.name)
            continue
        sources.append(cls(session=session, timeout=cfg.timeout))
        log.info("Registered source: %s", cfg.name)
    return sources
