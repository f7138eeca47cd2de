"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  PROVISIONER_LOG_LEVEL env var  >  WARNING (default)

Optional file output via PROVISIONER_LOG_FILE / PROVISIONER_LOG_FILE_LEVEL.

Records emitted while a run is in progress carry the run and step ids
(``%(run_tag)s``), so a log file shared by several runs can be split
back into individual runs:

    12:04:31 [provisioner.adapters.base] run-20260101-120431-a1b2c3/opam-init: ...
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# ── Format strings ──────────────────────────────────────────────

# WARNING level: message only
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped, tagged with the current run/step
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(run_tag)s%(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: adds file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(run_tag)s%(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(run_tag)s%(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

ENV_LEVEL = "PROVISIONER_LOG_LEVEL"
ENV_FILE = "PROVISIONER_LOG_FILE"
ENV_FILE_LEVEL = "PROVISIONER_LOG_FILE_LEVEL"


# ── Run context ─────────────────────────────────────────────────

_run_id: ContextVar[str | None] = ContextVar("provisioner_run_id", default=None)
_step_id: ContextVar[str | None] = ContextVar("provisioner_step_id", default=None)


@contextmanager
def run_context(run_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``run_id``."""
    token = _run_id.set(run_id)
    try:
        yield
    finally:
        _run_id.reset(token)


@contextmanager
def step_context(step_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``step_id``."""
    token = _step_id.set(step_id)
    try:
        yield
    finally:
        _step_id.reset(token)


class RunContextFilter(logging.Filter):
    """Adds ``run_id``, ``step_id`` and ``run_tag`` to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        run_id, step_id = _run_id.get(), _step_id.get()
        record.run_id = run_id or "-"
        record.step_id = step_id or "-"
        if run_id and step_id:
            record.run_tag = f"{run_id}/{step_id}: "
        elif run_id:
            record.run_tag = f"{run_id}: "
        else:
            record.run_tag = ""
        return True


# ── Setup ───────────────────────────────────────────────────────


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> str:
    """Console level from the CLI flags, else ``PROVISIONER_LOG_LEVEL``."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
    """
    numeric_level = parse_level(level)
    context_filter = RunContextFilter()

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    console.addFilter(context_filter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        fh.addFilter(context_filter)
        root.addHandler(fh)

    root.setLevel(effective_level)
    logging.raiseExceptions = False


def setup_logging_from_env(level: str) -> None:
    """``setup_logging`` with file output taken from the environment."""
    setup_logging(
        level=level,
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


def parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
