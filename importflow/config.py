"""Runtime settings resolved from CLI flags and IMPORTFLOW_* environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

ENV_STORE_DIR = "IMPORTFLOW_STORE_DIR"
ENV_TODAY = "IMPORTFLOW_TODAY"
ENV_LOG_LEVEL = "IMPORTFLOW_LOG_LEVEL"

DEFAULT_STORE_DIR = Path.home() / ".importflow"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    store_dir: Path
    today: Optional[date]
    log_level: int


def parse_today(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"Invalid date for today override: {value!r} (expected YYYY-MM-DD)")


def resolve_log_level(base: str, *, quiet: bool = False, verbose: bool = False) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    level = logging.getLevelName(base.strip().upper())
    return level if isinstance(level, int) else logging.WARNING


def load_settings(
    *,
    store_dir: Optional[str] = None,
    today: Optional[str] = None,
    quiet: bool = False,
    verbose: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    env = os.environ if environ is None else environ
    resolved_dir = store_dir or env.get(ENV_STORE_DIR) or DEFAULT_STORE_DIR
    return Settings(
        store_dir=Path(resolved_dir).expanduser(),
        today=parse_today(today or env.get(ENV_TODAY)),
        log_level=resolve_log_level(env.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL), quiet=quiet, verbose=verbose),
    )
