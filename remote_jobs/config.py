"""Load search settings (YAML + env) and per-source credentials."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

from remote_jobs.errors import ConfigurationError
from remote_jobs.log import get_logger

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "search.yaml"

MAX_BACKUP_KEYS = 9


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


@dataclass(frozen=True)
class SourceSettings:
    name: str
    weight: int = 10
    max_queries: int = 5
    query_delay: float | None = None
    timeout: float = 15.0


@dataclass(frozen=True)
class HeuristicWeights:
    """Relative weight of each heuristic signal; they should sum to 1."""

    skills: float = 0.35
    role: float = 0.30
    industry: float = 0.20
    responsibilities: float = 0.15


DEFAULT_SOURCES: tuple[SourceSettings, ...] = (
    SourceSettings("JSearch", weight=20),
    SourceSettings("Adzuna", weight=20),
    SourceSettings("TheMuse", weight=20),
    SourceSettings("Reed", weight=15, query_delay=0.3),
    SourceSettings("RapidAPI-Jobs", weight=15),
    SourceSettings("Theirstack", weight=10, max_queries=3),
    SourceSettings("Remotive", weight=10),
)


@dataclass(frozen=True)
class SearchSettings:
    # Matching. 70 and 95 are empirically tuned, not derived; keep them
    # adjustable from config/search.yaml.
    match_threshold: int = 70
    heuristic: HeuristicWeights = field(default_factory=HeuristicWeights)
    heuristic_cap: int = 95
    source_boosts: dict[str, int] = field(default_factory=dict)
    llm_min_heuristic: int = 0
    score_batch_size: int = 4

    # Pacing
    query_delay: float = 0.5
    source_delay: float = 1.0

    # Health / rotation
    health_reset_interval: float = 3600.0
    suspicious_limit: int = 3
    max_attempts: int = 2

    # Caching / salary
    cache_ttl: float = 900.0
    cache_size: int = 100
    gbp_to_usd: float = 1.3

    # LLM tier
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = ""
    llm_timeout: float = 30.0

    sources: tuple[SourceSettings, ...] = DEFAULT_SOURCES

    def source(self, name: str) -> SourceSettings:
        for s in self.sources:
            if s.name.lower() == name.lower():
                return s
        return SourceSettings(name)

    @property
    def batch_size(self) -> int:
        return max(2, min(8, int(self.score_batch_size)))


def _coerce_sources(raw: Any) -> tuple[SourceSettings, ...]:
    if not raw:
        return DEFAULT_SOURCES
    allowed = {f.name for f in fields(SourceSettings)}
    out: list[SourceSettings] = []
    for item in raw:
        if isinstance(item, str):
            out.append(SourceSettings(item))
            continue
        if not isinstance(item, dict) or not item.get("name"):
            raise ConfigurationError(f"Invalid source entry in settings: {item!r}")
        out.append(SourceSettings(**{k: v for k, v in item.items() if k in allowed}))
    return tuple(out)


def settings_from_dict(data: dict[str, Any], base: SearchSettings | None = None) -> SearchSettings:
    """Overlay a (YAML-shaped) dict on *base*; unknown keys are ignored."""
    base = base or SearchSettings()
    known = {f.name for f in fields(SearchSettings)}
    updates: dict[str, Any] = {}
    for key, value in (data or {}).items():
        if key not in known:
            log.warning("Ignoring unknown setting %r", key)
            continue
        if key == "heuristic":
            updates[key] = replace(base.heuristic, **(value or {}))
        elif key == "sources":
            updates[key] = _coerce_sources(value)
        elif key == "source_boosts":
            updates[key] = {str(k): int(v) for k, v in (value or {}).items()}
        else:
            updates[key] = value
    return replace(base, **updates)


def load_settings(path: Path | str | None = None) -> SearchSettings:
    """Defaults, then config/search.yaml (or *path*), then env overrides."""
    settings = SearchSettings()
    settings_path = Path(path) if path else SETTINGS_PATH
    if settings_path.exists():
        with open(settings_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        settings = settings_from_dict(data, settings)
        log.info("Loaded search settings from %s", settings_path)
    elif path:
        raise ConfigurationError(f"Settings file not found: {settings_path}")

    env_overrides: dict[str, Any] = {}
    if get_env("MATCH_THRESHOLD"):
        env_overrides["match_threshold"] = int(get_env("MATCH_THRESHOLD"))
    if get_env("LLM_MODEL"):
        env_overrides["llm_model"] = get_env("LLM_MODEL")
    if get_env("LLM_BASE_URL"):
        env_overrides["llm_base_url"] = get_env("LLM_BASE_URL")
    return replace(settings, **env_overrides) if env_overrides else settings


# ── Credentials ──────────────────────────────────────────────────────────

# source name -> env var names that together form one credential
CREDENTIAL_VARS: dict[str, tuple[str, ...]] = {
    "JSearch": ("RAPIDAPI_KEY",),
    "RapidAPI-Jobs": ("RAPIDAPI_KEY",),
    "Adzuna": ("ADZUNA_APP_ID", "ADZUNA_APP_KEY"),
    "TheMuse": ("THEMUSE_API_KEY",),
    "Reed": ("REED_API_KEY",),
    "Theirstack": ("THEIRSTACK_API_KEY",),
}


def _credential_set(
    var_names: tuple[str, ...], suffix: str, env_getter: Callable[..., str]
) -> dict[str, str] | None:
    values = {name: env_getter(f"{name}{suffix}") for name in var_names}
    present = [v for v in values.values() if v]
    if not present:
        return None
    if len(present) != len(values):
        missing = [f"{n}{suffix}" for n, v in values.items() if not v]
        raise ConfigurationError(f"Incomplete credential, missing {', '.join(missing)}")
    return values


def load_credentials(
    source_name: str, env_getter: Callable[..., str] = get_env
) -> list[tuple[str, dict[str, str]]]:
    """Return ``(label, values)`` pairs: the primary set, then numbered backups.

    A half-configured composite credential is logged and skipped.
    """
    var_names = CREDENTIAL_VARS.get(source_name)
    if var_names is None:
        return []

    found: list[tuple[str, dict[str, str]]] = []
    suffixes = [("primary", "")] + [
        (f"backup-{i}", f"_BACKUP_{i}") for i in range(1, MAX_BACKUP_KEYS + 1)
    ]
    for label, suffix in suffixes:
        try:
            values = _credential_set(var_names, suffix, env_getter)
        except ConfigurationError as exc:
            log.warning("%s: %s — skipping this credential", source_name, exc)
            continue
        if values:
            found.append((label, values))
    return found
