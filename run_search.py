#!/usr/bin/env python3
"""Run one remote-job search from the command line.

    python run_search.py config/profile.example.yaml --filters filters.yaml

Events are printed to stdout as JSON lines; logs go to stderr and logs/.
"""
from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

import yaml

from remote_jobs.config import load_settings
from remote_jobs.errors import ConfigurationError
from remote_jobs.log import get_logger
from remote_jobs.models import ResumeProfile, SearchFilters
from remote_jobs.orchestrator import SearchOrchestrator

log = get_logger(__name__)


def _load_mapping(path: Path) -> dict:
    """YAML or JSON file (JSON is valid YAML) holding a mapping."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a mapping")
    return data


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Search remote jobs matching a resume profile.")
    parser.add_argument("profile", type=Path, help="resume profile (YAML or JSON)")
    parser.add_argument("--filters", type=Path, help="search filters (YAML or JSON)")
    parser.add_argument("--threshold", type=int, help="minimum match percentage to report")
    parser.add_argument("--settings", type=Path, help="settings file (default: config/search.yaml)")
    args = parser.parse_args(argv)

    try:
        profile = ResumeProfile.from_dict(_load_mapping(args.profile))
        filters = SearchFilters.from_dict(_load_mapping(args.filters)) if args.filters else SearchFilters()
        settings = load_settings(args.settings)
    except (OSError, ValueError, TypeError, yaml.YAMLError, ConfigurationError) as exc:
        log.error("Could not read input: %s", exc)
        return 2

    if args.threshold is not None:
        settings = replace(settings, match_threshold=args.threshold)

    orchestrator = SearchOrchestrator.from_settings(settings)
    status = 0
    for event in orchestrator.search(profile, filters):
        print(json.dumps(event.to_dict(), default=str), flush=True)
        if event.type == "error":
            status = 1
        elif event.type == "search_complete":
            log.info("Search complete: %d job(s) in %.1fs", event.total_jobs, event.elapsed_seconds)
    return status


if __name__ == "__main__":
    sys.exit(main())
