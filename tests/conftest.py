"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.services.subprocess_runner import CommandResult


class FakeRunner:
    """Records every command instead of running it.

    Results are matched by substring of the joined argv; the first
    matching rule wins.  Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self._rules: list[tuple[str, CommandResult]] = []

    def on(self, fragment: str, exit_status: int | None = 0, stdout: str = "",
           stderr: str = "", error: str | None = None) -> None:
        self._rules.append(
            (fragment, CommandResult(argv=[], exit_status=exit_status,
                                     stdout=stdout, stderr=stderr, error=error))
        )

    def __call__(self, argv, *, cwd=None, timeout=1800, input_text=None) -> CommandResult:
        self.calls.append(
            {"argv": list(argv), "cwd": cwd, "timeout": timeout, "input": input_text}
        )
        joined = " ".join(argv)
        for fragment, result in self._rules:
            if fragment in joined:
                return CommandResult(
                    argv=list(argv),
                    exit_status=result.exit_status,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    error=result.error,
                )
        return CommandResult(argv=list(argv), exit_status=0)

    @property
    def commands(self) -> list[str]:
        return [" ".join(c["argv"]) for c in self.calls]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def registry(fake_runner: FakeRunner) -> AdapterRegistry:
    """All adapters, wired to the fake runner, invoked as root."""
    return default_registry(runner=fake_runner, invoking_user="root")


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def recipe_dir(tmp_path: Path) -> Path:
    """A directory holding a small provision.yml and a source tree."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "plugin.ml").write_text("let () = ()\n")
    (tmp_path / "provision.yml").write_text(SMALL_RECIPE)
    return tmp_path


SMALL_RECIPE = """\
name: small
description: A small test recipe
base_image: ubuntu:bionic
defaults:
  timeout: 60
steps:
  - id: packages
    kind: packages
    manager: apt
    packages: [git]
  - id: user
    kind: user
    username: builder
  - id: path
    kind: env
    prepend_path: [/home/builder/.local/bin]
  - id: hello
    kind: shell
    command: echo hello
entrypoint: [env]
"""
