"""Search session driver.

Runs: plan queries -> per source, per query: credential -> adapter ->
exhaustion verdict -> remote filter -> post filters -> dedupe -> score ->
threshold -> stream. Sources run one after another with fixed pauses in
between; only scoring fans out, in small bounded batches.
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Sequence, Union

from remote_jobs.cache import ResultCache, cache_key
from remote_jobs.config import SearchSettings, get_env, load_settings
from remote_jobs.dedupe import dedupe
from remote_jobs.errors import ConfigurationError, ExhaustionError, SessionError
from remote_jobs.events import (
    JobsFound, ProgressUpdate, SearchComplete, SearchError, SearchStarted, UserMessage,
)
from remote_jobs.exhaustion import ExhaustionDetector
from remote_jobs.filters import PostFilter
from remote_jobs.keys import KeyRotationRegistry
from remote_jobs.llm import build_completion
from remote_jobs.log import get_logger
from remote_jobs.models import Job, ResumeProfile, ScoredJob, SearchFilters
from remote_jobs.planning import QueryPlanner
from remote_jobs.remote import filter_remote
from remote_jobs.scoring import HeuristicScorer, LLMScorer, MatchScorer
from remote_jobs.sources import SourceAdapter, get_sources

log = get_logger(__name__)

Event = Union[SearchStarted, JobsFound, ProgressUpdate, UserMessage, SearchComplete, SearchError]

NO_PROFILE_MESSAGE = (
    "No usable resume profile: add technical skills, work experience or "
    "responsibilities and try again."
)
NO_RESULTS_MESSAGE = (
    "No matching remote jobs found. Try broadening your search criteria: "
    "lower the salary floor, widen the experience level or timezone, or add "
    "more skills to your profile."
)


class SessionState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    QUERYING = "querying"
    FILTERING = "filtering"
    SCORING = "scoring"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.FAILED, SessionState.CANCELLED})


@dataclass
class SourceStats:
    queries: int = 0
    raw_jobs: int = 0
    matches: int = 0
    errors: int = 0
    cache_hits: int = 0


class SearchSession:
    """Iterator over one session's events.

    ``cancel()`` stops new (source, query) work; iterating on still ends with
    a terminal event. ``close()`` (client went away) stops immediately.
    """

    def __init__(self, run: Callable[["SearchSession"], Iterator[Event]]) -> None:
        self.state = SessionState.IDLE
        self._cancel = threading.Event()
        self._events = run(self)

    def __iter__(self) -> "SearchSession":
        return self

    def __next__(self) -> Event:
        return next(self._events)

    def cancel(self) -> None:
        if not self._cancel.is_set():
            log.info("Search cancelled by caller")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def close(self) -> None:
        self._cancel.set()
        self._events.close()
        if self.state not in TERMINAL_STATES:
            self.state = SessionState.CANCELLED


class SearchOrchestrator:
    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        registry: KeyRotationRegistry,
        scorer: MatchScorer | None = None,
        settings: SearchSettings | None = None,
        *,
        detector: ExhaustionDetector | None = None,
        planner: QueryPlanner | None = None,
        post_filter: PostFilter | None = None,
        cache: ResultCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or SearchSettings()
        self.adapters = list(adapters)
        self.registry = registry
        self.scorer = scorer or MatchScorer(
            HeuristicScorer(
                self.settings.heuristic,
                cap=self.settings.heuristic_cap,
                source_boosts=self.settings.source_boosts,
            )
        )
        self.detector = detector or ExhaustionDetector()
        self.planner = planner or QueryPlanner()
        self.post_filter = post_filter or PostFilter(gbp_to_usd=self.settings.gbp_to_usd)
        self.cache = cache
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: SearchSettings | None = None,
        *,
        registry: KeyRotationRegistry | None = None,
        env_getter: Callable[..., str] = get_env,
    ) -> "SearchOrchestrator":
        """Wire everything from settings and the environment.

        Pass the process-wide *registry* when one already exists so that
        health and rotation state is shared across sessions.
        """
        settings = settings or load_settings()
        adapters = get_sources(settings)
        if registry is None:
            registry = KeyRotationRegistry.from_env(
                [a.name for a in adapters],
                env_getter,
                keyless=[a.name for a in adapters if not a.requires_credential],
                reset_interval=settings.health_reset_interval,
                suspicious_limit=settings.suspicious_limit,
            )
        completion = build_completion(settings)
        scorer = MatchScorer(
            HeuristicScorer(settings.heuristic, cap=settings.heuristic_cap, source_boosts=settings.source_boosts),
            LLMScorer(completion) if completion else None,
            llm_min_heuristic=settings.llm_min_heuristic,
        )
        cache = ResultCache(ttl=settings.cache_ttl, max_size=settings.cache_size)
        if not cache.enabled:
            log.info("Result cache disabled (cache_size=%s, cache_ttl=%s)", settings.cache_size, settings.cache_ttl)
            cache = None
        return cls(adapters, registry, scorer, settings, cache=cache)

    # ── Administrative surface ───────────────────────────────────────────

    @property
    def source_names(self) -> list[str]:
        return [a.name for a in self.adapters]

    def source_health(self) -> dict[str, dict]:
        return self.registry.report(self.source_names)

    def reset_health(self, source: str | None = None) -> None:
        self.registry.reset(source)

    def clear_cache(self) -> int:
        return self.cache.clear() if self.cache is not None else 0

    # ── Session ──────────────────────────────────────────────────────────

    def search(self, profile: ResumeProfile | None, filters: SearchFilters | None = None) -> SearchSession:
        return SearchSession(lambda session: self._run(session, profile, filters or SearchFilters()))

    def _run(
        self, session: SearchSession, profile: ResumeProfile | None, filters: SearchFilters
    ) -> Iterator[Event]:
        started = self._clock()
        stats = {name: SourceStats() for name in self.source_names}
        matches: list[ScoredJob] = []
        try:
            yield SearchStarted(
                f"Searching {len(self.adapters)} source(s) for remote jobs",
                sources=tuple(self.source_names),
            )
            if profile is None or not profile.has_signal():
                raise SessionError(NO_PROFILE_MESSAGE, code="INVALID_PROFILE")

            # 1. Plan
            session.state = SessionState.PLANNING
            queries = self.planner.plan(profile)
            yield ProgressUpdate(f"Planned {len(queries)} search queries", 0)

            # 2. Sources, in priority order
            for event in self._run_sources(session, profile, filters, queries, stats, matches):
                yield event

            # 3. Summary
            elapsed = round(self._clock() - started, 2)
            report = self._health_report(stats)
            if not matches and not session.cancelled:
                raise SessionError(NO_RESULTS_MESSAGE, code="NO_RESULTS")
            ranked = sorted(matches, key=lambda s: s.match_percentage, reverse=True)
            session.state = SessionState.CANCELLED if session.cancelled else SessionState.COMPLETED
            log.info(
                "Search %s: %d match(es) in %.1fs",
                session.state.value, len(ranked), elapsed,
            )
            yield ProgressUpdate("Search complete", 100)
            yield SearchComplete(tuple(ranked), elapsed, report, cancelled=session.cancelled)
        except SessionError as exc:
            session.state = SessionState.FAILED
            log.warning("Search failed: %s", exc)
            yield SearchError(str(exc), code=exc.code)
        except GeneratorExit:
            session.state = SessionState.CANCELLED
            log.info("Search stream closed by client")
            raise
        except Exception as exc:
            session.state = SessionState.FAILED
            log.exception("Search aborted by an unexpected error")
            yield SearchError(f"Search failed unexpectedly: {exc}", code="INTERNAL")

    def _run_sources(
        self,
        session: SearchSession,
        profile: ResumeProfile,
        filters: SearchFilters,
        queries: list[str],
        stats: dict[str, SourceStats],
        matches: list[ScoredJob],
    ) -> Iterator[Event]:
        seen: set[tuple[str, str]] = set()
        weights = {a.name: max(self.settings.source(a.name).weight, 0) for a in self.adapters}
        total_weight = sum(weights.values()) or 1
        done_weight = 0.0
        touched_network = False

        for adapter in self.adapters:
            if session.cancelled:
                break
            name = adapter.name
            cfg = self.settings.source(name)
            share = weights[name]
            source_queries = queries[: max(cfg.max_queries, 0)]

            try:
                self._check_usable(name)
            except ConfigurationError as exc:
                log.info("Skipping %s: %s", name, exc)
                yield UserMessage(f"{name} is not configured; skipping.", source=name, level="info")
                done_weight += share
                continue
            except ExhaustionError as exc:
                log.info("Skipping %s: %s", name, exc)
                yield UserMessage(self._exhausted_message(name), source=name)
                done_weight += share
                continue

            if touched_network:
                self._sleep(self.settings.source_delay)
            touched_network = True

            delay = cfg.query_delay if cfg.query_delay is not None else self.settings.query_delay
            for i, query in enumerate(source_queries):
                if session.cancelled:
                    break
                if i:
                    self._sleep(delay)
                percent = int(100 * (done_weight + share * i / len(source_queries)) / total_weight)
                yield ProgressUpdate(f"Searching {name}: {query}", percent)

                session.state = SessionState.QUERYING
                try:
                    raw = self._fetch(adapter, query, filters, stats[name])
                except ExhaustionError as exc:
                    log.warning("%s: %s, skipping remaining queries", name, exc.reason)
                    yield UserMessage(self._exhausted_message(name), source=name)
                    break
                if not raw:
                    continue

                session.state = SessionState.FILTERING
                candidates = dedupe(self.post_filter.apply(filter_remote(raw), filters), seen)
                log.debug(
                    "%s q=%r: %d raw -> %d candidates", name, query, len(raw), len(candidates),
                )
                if not candidates:
                    continue

                session.state = SessionState.SCORING
                scored = self._score(candidates, profile)
                batch = [s for s in scored if s.match_percentage >= self.settings.match_threshold]
                if not batch:
                    continue

                session.state = SessionState.STREAMING
                stats[name].matches += len(batch)
                matches.extend(batch)
                percent = int(100 * (done_weight + share * (i + 1) / len(source_queries)) / total_weight)
                yield JobsFound(tuple(batch), name, percent)

            done_weight += share
            log.info(
                "[%s] queries=%d raw=%d matches=%d errors=%d",
                name, stats[name].queries, stats[name].raw_jobs, stats[name].matches, stats[name].errors,
            )

    def _check_usable(self, name: str) -> None:
        if not self.registry.is_configured(name):
            raise ConfigurationError(f"no credentials for {name}")
        if self.registry.get_credential(name) is None:
            raise ExhaustionError(name, self.registry.health(name).reason or "all credentials spent")

    def _exhausted_message(self, name: str) -> str:
        minutes = self.registry.report([name])[name]["nextResetMinutes"]
        return f"{name} has reached its usage limit and is paused for about {minutes} minute(s)."

    def _fetch(self, adapter: SourceAdapter, query: str, filters: SearchFilters, stats: SourceStats) -> list[Job]:
        """Raw jobs for one (source, query) pair.

        Bounded attempts: an exhaustion verdict rotates to the next credential
        and tries again; anything else gives up on this pair. Raises
        ``ExhaustionError`` once no credential is left.
        """
        name = adapter.name
        key = cache_key(name, query, filters)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                stats.cache_hits += 1
                return cached

        for attempt in range(1, self.settings.max_attempts + 1):
            credential = self.registry.get_credential(name)
            if credential is None:
                raise ExhaustionError(name, self.registry.health(name).reason or "all credentials spent")

            stats.queries += 1
            try:
                jobs = adapter.search(query, filters, credential)
            except Exception as exc:
                # Adapters raise SourceError; anything else is classified the same way.
                stats.errors += 1
                verdict = self.detector.classify(exc)
                log.warning("%s q=%r attempt %d failed: %s [%s]", name, query, attempt, exc, verdict.kind.value)
                self.registry.apply(name, verdict, credential)
                if verdict.exhausted:
                    continue
                return []

            stats.raw_jobs += len(jobs)
            self.registry.apply(name, self.detector.classify_results(jobs), credential)
            if jobs and self.cache is not None:
                self.cache.set(key, jobs)
            return jobs

        if self.registry.get_credential(name) is None:
            raise ExhaustionError(name, self.registry.health(name).reason or "all credentials spent")
        return []

    def _score(self, jobs: list[Job], profile: ResumeProfile) -> list[ScoredJob]:
        size = self.settings.batch_size
        out: list[ScoredJob] = []
        with ThreadPoolExecutor(max_workers=size) as pool:
            for start in range(0, len(jobs), size):
                chunk = jobs[start:start + size]
                out.extend(pool.map(lambda job: self.scorer.score(job, profile), chunk))
        return out

    def _health_report(self, stats: dict[str, SourceStats]) -> dict[str, Any]:
        report = self.registry.report(self.source_names)
        for name, entry in report.items():
            s = stats.get(name, SourceStats())
            entry.update(
                queries=s.queries,
                rawJobs=s.raw_jobs,
                matches=s.matches,
                errors=s.errors,
                cacheHits=s.cache_hits,
            )
        return report
