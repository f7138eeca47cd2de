"""
Tests for logging setup.
"""

import logging
from pathlib import Path

import pytest

from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import default_registry
from provisioner.core.engine.provisioner import Provisioner
from provisioner.core.models.environment import Environment
from provisioner.core.models.step import Step
from provisioner.core.observability.logging_config import (
    parse_level,
    resolve_level,
    run_context,
    setup_logging,
    step_context,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestParseLevel:
    def test_names(self):
        assert parse_level("debug") == logging.DEBUG
        assert parse_level("INFO") == logging.INFO

    def test_fallback(self):
        assert parse_level(None) == logging.WARNING
        assert parse_level("loud") == logging.WARNING


class TestResolveLevel:
    def test_flags_win(self, monkeypatch):
        monkeypatch.setenv("PROVISIONER_LOG_LEVEL", "ERROR")
        assert resolve_level(debug=True, quiet=True) == "DEBUG"
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_environment_then_default(self, monkeypatch):
        monkeypatch.setenv("PROVISIONER_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"
        monkeypatch.delenv("PROVISIONER_LOG_LEVEL")
        assert resolve_level() == "WARNING"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging(level="INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_file_handler_with_own_level(self, tmp_path: Path):
        log_file = tmp_path / "provisioner.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        logging.getLogger("provisioner.test").debug("to file only")
        for handler in root.handlers:
            handler.flush()
        assert "to file only" in log_file.read_text()

    def test_cli_flag_beats_environment(self, monkeypatch, recipe_dir: Path):
        from click.testing import CliRunner

        from provisioner.main import cli

        monkeypatch.setenv("PROVISIONER_LOG_LEVEL", "ERROR")
        CliRunner().invoke(cli, ["--debug", "status"], obj={"cwd": recipe_dir})
        assert logging.getLogger().level == logging.DEBUG

    def test_environment_level(self, monkeypatch, recipe_dir: Path):
        from click.testing import CliRunner

        from provisioner.main import cli

        monkeypatch.setenv("PROVISIONER_LOG_LEVEL", "ERROR")
        CliRunner().invoke(cli, ["status"], obj={"cwd": recipe_dir})
        assert logging.getLogger().level == logging.ERROR


# ── Run context ──────────────────────────────────────────────────────


def _file_logging(tmp_path: Path) -> Path:
    log_file = tmp_path / "provisioner.log"
    setup_logging(level="ERROR", log_file=str(log_file), log_file_level="INFO")
    return log_file


def _read(log_file: Path) -> str:
    for handler in logging.getLogger().handlers:
        handler.flush()
    return log_file.read_text()


class TestRunContext:
    def test_records_tagged_inside_blocks(self, tmp_path: Path):
        log_file = _file_logging(tmp_path)
        log = logging.getLogger("provisioner.test")
        with run_context("run-1"):
            log.info("starting")
            with step_context("opam-init"):
                log.info("inside step")
        log.info("afterwards")

        lines = _read(log_file).splitlines()
        assert lines[0].endswith("run-1: starting")
        assert lines[1].endswith("run-1/opam-init: inside step")
        assert lines[2].endswith(" afterwards")
        assert "run-1" not in lines[2]

    def test_provisioner_tags_its_records(self, tmp_path: Path):
        log_file = _file_logging(tmp_path)
        registry = default_registry(invoking_user="root")
        registry.set_mock_mode(True, MockAdapter())
        steps = [Step(id="hello", kind="shell", params={"command": "echo hi"})]

        result = Provisioner(registry).run(steps, Environment())
        assert f"{result.run_id}: ✓ [1/1] shell:hello" in _read(log_file)
