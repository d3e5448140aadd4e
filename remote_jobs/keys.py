"""Process-wide credential rotation and source health.

One ``KeyRotationRegistry`` is built at process start and handed to every
orchestrator. All mutation goes through ``apply`` (verdicts from the
exhaustion detector), ``rotate`` and ``reset``, under one lock.

Health transitions per source::

    healthy --empty--> suspicious(n) --n == limit--> exhausted*
    any --quota signal--> exhausted*
    exhausted --reset window / manual reset--> healthy

    * unless another credential is left, in which case the registry rotates
      to it and the source is healthy again.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping, Sequence

from remote_jobs.config import get_env, load_credentials
from remote_jobs.exhaustion import Verdict, VerdictKind
from remote_jobs.log import get_logger, mask

log = get_logger(__name__)


@dataclass(frozen=True, repr=False)
class Credential:
    """One atomic credential; composite keys (app id + key) travel together."""

    source: str
    label: str
    values: Mapping[str, str] = field(default_factory=dict)

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def get(self, key: str, default: str = "") -> str:
        return self.values.get(key, default)

    def __repr__(self) -> str:
        return f"Credential({self.source}:{self.label})"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    SUSPICIOUS = "suspicious"
    EXHAUSTED = "exhausted"


@dataclass
class SourceHealth:
    status: HealthStatus = HealthStatus.HEALTHY
    suspicious_count: int = 0
    reason: str = ""
    consecutive_errors: int = 0
    last_error: str = ""

    @property
    def is_healthy(self) -> bool:
        return self.status is HealthStatus.HEALTHY and self.consecutive_errors == 0


@dataclass
class CredentialSlot:
    """``current_index`` points at an unspent credential, or at the last one
    once every credential has been spent in this window."""

    source_name: str
    credentials: list[Credential]
    current_index: int = 0
    spent: set[int] = field(default_factory=set)

    @property
    def all_spent(self) -> bool:
        return bool(self.credentials) and len(self.spent) >= len(self.credentials)

    @property
    def remaining(self) -> int:
        return len(self.credentials) - len(self.spent)


class KeyRotationRegistry:
    def __init__(
        self,
        credentials: Mapping[str, Sequence[Credential]] | None = None,
        *,
        reset_interval: float = 3600.0,
        suspicious_limit: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.reset_interval = reset_interval
        self.suspicious_limit = suspicious_limit
        self._clock = clock
        self._lock = threading.RLock()
        self._slots: dict[str, CredentialSlot] = {}
        self._health: dict[str, SourceHealth] = {}
        self._window_start = clock()
        for name, creds in (credentials or {}).items():
            self.register(name, creds)

    @classmethod
    def from_env(
        cls,
        source_names: Iterable[str],
        env_getter: Callable[..., str] = get_env,
        *,
        keyless: Iterable[str] = (),
        **kwargs,
    ) -> "KeyRotationRegistry":
        """Credentials for each source from the environment. Sources in
        *keyless* get one ``public`` credential so quota verdicts still
        have something to spend."""
        registry = cls(**kwargs)
        keyless = set(keyless)
        for name in source_names:
            if name in keyless:
                creds = [Credential(source=name, label="public")]
            else:
                creds = [
                    Credential(source=name, label=label, values=values)
                    for label, values in load_credentials(name, env_getter)
                ]
            registry.register(name, creds)
        return registry

    def register(self, source: str, credentials: Sequence[Credential]) -> None:
        with self._lock:
            self._slots[source] = CredentialSlot(source, list(credentials))
            self._health.setdefault(source, SourceHealth())
        if credentials:
            log.debug(
                "%s: %d credential(s) registered (%s)", source, len(credentials),
                ", ".join(f"{c.label}={mask(next(iter(c.values.values()), ''))}" for c in credentials),
            )

    def is_configured(self, source: str) -> bool:
        with self._lock:
            slot = self._slots.get(source)
            return bool(slot and slot.credentials)

    # ── Reset window ─────────────────────────────────────────────────────

    def _reset_if_due(self) -> None:
        elapsed = self._clock() - self._window_start
        if elapsed >= self.reset_interval:
            exhausted = [n for n, h in self._health.items() if h.status is HealthStatus.EXHAUSTED]
            self._reset_all()
            if exhausted:
                log.info(
                    "Reset window elapsed (%.0f min) — restored: %s",
                    elapsed / 60, ", ".join(exhausted),
                )

    def _reset_all(self) -> None:
        for name in self._slots:
            self._reset_source(name)
        self._window_start = self._clock()

    def _reset_source(self, source: str) -> None:
        slot = self._slots.get(source)
        if slot:
            slot.current_index = 0
            slot.spent.clear()
        self._health[source] = SourceHealth()

    def reset(self, source: str | None = None) -> None:
        """Manual reset of one source, or of everything (which restarts the window)."""
        with self._lock:
            if source is None:
                self._reset_all()
                log.info("Manual reset: all sources healthy")
            else:
                self._reset_source(source)
                log.info("Manual reset: %s healthy", source)

    # ── Credentials ──────────────────────────────────────────────────────

    def get_credential(self, source: str) -> Credential | None:
        """Current usable credential; None if unconfigured or all spent."""
        with self._lock:
            self._reset_if_due()
            slot = self._slots.get(source)
            if not slot or not slot.credentials or slot.all_spent:
                return None
            return slot.credentials[slot.current_index]

    def rotate(self, source: str, reason: str = "rotated", credential: Credential | None = None) -> bool:
        """Spend the current credential and move to the next unspent one.

        Returns False when none is left; the source is then exhausted until
        the next reset. When *credential* is given and is no longer the
        current one, another session already rotated past it and nothing
        changes.
        """
        with self._lock:
            self._reset_if_due()
            if self._is_stale(source, credential):
                return self._usable(source)
            return self._rotate(source, reason)

    def _is_stale(self, source: str, credential: Credential | None) -> bool:
        slot = self._slots.get(source)
        if credential is None or not slot or not slot.credentials:
            return False
        if slot.current_index in slot.spent:
            return True
        return slot.credentials[slot.current_index] != credential

    def _usable(self, source: str) -> bool:
        slot = self._slots.get(source)
        return bool(slot and slot.credentials and not slot.all_spent)

    def _rotate(self, source: str, reason: str) -> bool:
        slot = self._slots.get(source)
        health = self._health.setdefault(source, SourceHealth())
        if not slot or not slot.credentials:
            health.status, health.reason = HealthStatus.EXHAUSTED, reason
            return False

        spent_label = slot.credentials[slot.current_index].label
        slot.spent.add(slot.current_index)
        for offset in range(1, len(slot.credentials)):
            candidate = (slot.current_index + offset) % len(slot.credentials)
            if candidate not in slot.spent:
                slot.current_index = candidate
                health.status = HealthStatus.HEALTHY
                health.suspicious_count = 0
                health.reason = ""
                log.warning(
                    "%s: credential %s spent (%s) — rotated to %s",
                    source, spent_label, reason, slot.credentials[candidate].label,
                )
                return True

        health.status = HealthStatus.EXHAUSTED
        health.reason = reason
        log.warning("%s: all %d credential(s) exhausted (%s)", source, len(slot.credentials), reason)
        return False

    # ── Verdicts ─────────────────────────────────────────────────────────

    def apply(self, source: str, verdict: Verdict, credential: Credential | None = None) -> bool:
        """Record a detector verdict. Returns True while the source is usable.

        *credential* is the one the verdict was observed with. Empty and
        quota verdicts for a credential that is no longer current are
        dropped, so concurrent sessions cannot spend a key nobody tried.
        """
        with self._lock:
            self._reset_if_due()
            health = self._health.setdefault(source, SourceHealth())
            if health.status is HealthStatus.EXHAUSTED:
                return False

            if verdict.kind in (VerdictKind.SUSPICIOUS, VerdictKind.EXHAUSTED) and self._is_stale(source, credential):
                log.debug("%s: ignoring %s verdict for superseded credential %r", source, verdict.kind.value, credential)
                return self._usable(source)

            if verdict.kind is VerdictKind.OK:
                health.status = HealthStatus.HEALTHY
                health.suspicious_count = 0
                health.consecutive_errors = 0
                health.reason = ""
                return True

            if verdict.kind is VerdictKind.TRANSIENT:
                health.consecutive_errors += 1
                health.last_error = verdict.reason
                return True

            if verdict.kind is VerdictKind.SUSPICIOUS:
                health.consecutive_errors = 0
                health.suspicious_count += 1
                if health.suspicious_count < self.suspicious_limit:
                    health.status = HealthStatus.SUSPICIOUS
                    health.reason = verdict.reason
                    log.info(
                        "%s: %s (%d/%d)", source, verdict.reason,
                        health.suspicious_count, self.suspicious_limit,
                    )
                    return True
                return self._rotate(source, "repeated empty responses")

            return self._rotate(source, verdict.reason)

    # ── Reporting ────────────────────────────────────────────────────────

    def health(self, source: str) -> SourceHealth:
        with self._lock:
            self._reset_if_due()
            h = self._health.get(source, SourceHealth())
            return SourceHealth(**vars(h))

    def is_exhausted(self, source: str) -> bool:
        return self.health(source).status is HealthStatus.EXHAUSTED

    def report(self, sources: Iterable[str] | None = None) -> dict[str, dict]:
        with self._lock:
            self._reset_if_due()
            next_reset = max(0.0, self.reset_interval - (self._clock() - self._window_start))
            names = list(sources) if sources is not None else list(self._slots)
            out: dict[str, dict] = {}
            for name in names:
                h = self._health.get(name, SourceHealth())
                slot = self._slots.get(name)
                out[name] = {
                    "status": h.status.value,
                    "healthy": h.is_healthy,
                    "suspiciousCount": h.suspicious_count,
                    "reason": h.reason,
                    "consecutiveErrors": h.consecutive_errors,
                    "lastError": h.last_error,
                    "credentials": len(slot.credentials) if slot else 0,
                    "credentialsRemaining": slot.remaining if slot else 0,
                    "nextResetMinutes": round(next_reset / 60),
                }
            return out
