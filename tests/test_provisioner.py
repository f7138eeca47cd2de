"""
Tests for the provisioner loop — ordering, short-circuit, environment
threading, the run state machine, and the failure taxonomy.
"""

import pytest

from provisioner.adapters.mock import MockAdapter
from provisioner.adapters.registry import AdapterRegistry, default_registry
from provisioner.core.config.loader import load_builtin_recipe
from provisioner.core.engine.failures import FailureKind, StepFailure, failure_kind_for
from provisioner.core.engine.provisioner import (
    Provisioner,
    RunStatus,
    generate_run_id,
)
from provisioner.core.models.environment import Environment
from provisioner.core.models.receipt import Receipt
from provisioner.core.models.step import Step


def _steps(*specs: dict) -> list[Step]:
    return [Step.model_validate(s) for s in specs]


def _mock_registry() -> tuple[AdapterRegistry, MockAdapter]:
    mock = MockAdapter()
    registry = default_registry(invoking_user="root")
    registry.set_mock_mode(True, mock)
    return registry, mock


# ── Ordering & short-circuit ─────────────────────────────────────────


class TestOrdering:
    def test_runs_in_declaration_order(self):
        registry, mock = _mock_registry()
        steps = _steps(*({"id": f"s{i}", "kind": "shell", "command": "x"} for i in range(5)))
        result = Provisioner(registry).run(steps, Environment())
        assert result.ok
        assert mock.executed_ids == ["s0", "s1", "s2", "s3", "s4"]

    @pytest.mark.parametrize("failing", [0, 2, 4])
    def test_no_step_after_failure_runs(self, failing: int):
        registry, mock = _mock_registry()
        mock.set_failure(f"s{failing}", exit_status=7)
        steps = _steps(*({"id": f"s{i}", "kind": "shell", "command": "x"} for i in range(5)))
        result = Provisioner(registry).run(steps, Environment())
        assert result.status is RunStatus.FAILED
        assert mock.executed_ids == [f"s{i}" for i in range(failing + 1)]
        assert result.failure.index == failing
        assert result.failure.step_id == f"s{failing}"

    def test_validation_failure_stops_run(self, registry, fake_runner):
        steps = _steps(
            {"id": "bad", "kind": "shell"},
            {"id": "never", "kind": "shell", "command": "touch /x"},
        )
        result = Provisioner(registry).run(steps, Environment())
        assert not result.ok
        assert fake_runner.calls == []
        assert result.exit_code == 1

    def test_unexpected_exit_status_stops_run(self, registry, fake_runner):
        fake_runner.on("step-one", exit_status=0)
        steps = _steps(
            {"id": "one", "kind": "shell", "command": "step-one", "expected_exit": 2},
            {"id": "two", "kind": "shell", "command": "step-two"},
        )
        result = Provisioner(registry).run(steps, Environment())
        assert result.status is RunStatus.FAILED
        assert len(fake_runner.calls) == 1


# ── Environment threading ────────────────────────────────────────────


class TestEnvironmentThreading:
    def test_path_visible_only_after_env_step(self, registry, fake_runner):
        steps = _steps(
            {"id": "before", "kind": "shell", "command": "which bapbuild"},
            {"id": "path", "kind": "env", "prepend_path": ["/opt/bap/bin"]},
            {"id": "after", "kind": "shell", "command": "which bapbuild"},
        )
        result = Provisioner(registry).run(steps, Environment())
        assert result.ok
        before, after = fake_runner.calls
        assert not any("/opt/bap/bin" in a for a in before["argv"])
        assert any(a.startswith("PATH=/opt/bap/bin:") for a in after["argv"])
        assert result.environment.path[0] == "/opt/bap/bin"

    def test_later_steps_run_as_created_user(self, registry, fake_runner):
        steps = _steps(
            {"id": "user", "kind": "user", "username": "bap"},
            {"id": "opam", "kind": "shell", "command": "opam init"},
        )
        result = Provisioner(registry).run(steps, Environment())
        assert result.ok
        last = fake_runner.calls[-1]
        assert last["argv"][:6] == ["sudo", "-n", "-H", "-u", "bap", "--"]
        assert last["cwd"] == "/home/bap"
        assert result.environment.user == "bap"

    def test_base_environment_untouched(self, registry):
        base = Environment()
        steps = _steps({"id": "path", "kind": "env", "prepend_path": ["/opt/bin"]})
        result = Provisioner(registry).run(steps, base)
        assert base.path[0] != "/opt/bin"
        assert result.environment.path[0] == "/opt/bin"

    def test_failure_keeps_environment_of_failing_step(self):
        registry, mock = _mock_registry()
        mock.set_failure("boom")
        steps = _steps(
            {"id": "path", "kind": "env", "prepend_path": ["/opt/bin"]},
            {"id": "boom", "kind": "shell", "command": "x"},
        )
        result = Provisioner(registry).run(steps, Environment())
        assert result.environment.path[0] == "/opt/bin"


# ── State machine ────────────────────────────────────────────────────


class TestStateMachine:
    def test_pending_to_succeeded(self):
        registry, _ = _mock_registry()
        provisioner = Provisioner(registry)
        assert provisioner.status is RunStatus.PENDING
        result = provisioner.run(_steps({"id": "a", "command": "x"}), Environment())
        assert provisioner.status is RunStatus.SUCCEEDED
        assert result.started_at and result.ended_at

    def test_pending_to_failed(self):
        registry, mock = _mock_registry()
        mock.set_failure("a")
        provisioner = Provisioner(registry)
        provisioner.run(_steps({"id": "a", "command": "x"}), Environment())
        assert provisioner.status is RunStatus.FAILED

    def test_cannot_run_twice(self):
        registry, _ = _mock_registry()
        provisioner = Provisioner(registry)
        provisioner.run([], Environment())
        with pytest.raises(RuntimeError, match="already ran"):
            provisioner.run([], Environment())

    def test_empty_sequence_succeeds(self):
        registry, _ = _mock_registry()
        result = Provisioner(registry).run([], Environment())
        assert result.ok
        assert result.environment == Environment()

    def test_observer_sees_every_transition(self):
        registry, _ = _mock_registry()
        events = []
        Provisioner(registry, observer=lambda e, i, s, r: events.append((e, s.id))).run(
            _steps({"id": "a", "command": "x"}, {"id": "b", "command": "y"}), Environment()
        )
        assert events == [
            ("started", "a"), ("finished", "a"), ("started", "b"), ("finished", "b"),
        ]

    def test_broken_observer_does_not_stop_run(self):
        registry, _ = _mock_registry()

        def observer(*_):
            raise ValueError("observer bug")

        result = Provisioner(registry, observer=observer).run(
            _steps({"id": "a", "command": "x"}), Environment()
        )
        assert result.ok

    def test_run_id_format(self):
        assert generate_run_id().startswith("run-")
        assert generate_run_id() != generate_run_id()


# ── Dry run ──────────────────────────────────────────────────────────


class TestDryRun:
    def test_nothing_executes(self, registry, fake_runner):
        steps = _steps(
            {"id": "a", "kind": "packages", "packages": ["git"]},
            {"id": "b", "kind": "shell", "command": "echo hi"},
        )
        result = Provisioner(registry, dry_run=True).run(steps, Environment())
        assert result.ok
        assert fake_runner.calls == []
        assert [r.status for r in result.receipts] == ["skipped", "skipped"]
        assert result.steps_completed == 0

    def test_threads_environment_between_steps(self, registry, fake_runner):
        steps = _steps(
            {"id": "user", "kind": "user", "username": "bap", "password": "bap"},
            {"id": "path", "kind": "env", "prepend_path": ["~/.opam/4.05.0/bin"]},
            {"id": "init", "kind": "shell", "command": "opam init", "privilege": "elevated"},
        )
        result = Provisioner(registry, dry_run=True).run(steps, Environment())
        assert result.ok
        assert fake_runner.calls == []
        assert result.environment.user == "bap"
        assert result.environment.working_dir == "/home/bap"
        assert result.environment.path[0] == "/home/bap/.opam/4.05.0/bin"
        assert result.receipts[2].metadata["commands"] == ["sudo -EH opam init"]

    def test_invalid_step_still_fails(self, registry):
        result = Provisioner(registry, dry_run=True).run(
            _steps({"id": "bad", "kind": "git"}), Environment()
        )
        assert result.status is RunStatus.FAILED


# ── Failure taxonomy & exit codes ────────────────────────────────────


class TestFailures:
    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            ("packages", FailureKind.PACKAGE_INSTALL),
            ("repository", FailureKind.PACKAGE_INSTALL),
            ("download", FailureKind.DOWNLOAD),
            ("git", FailureKind.REPOSITORY_CLONE),
            ("build", FailureKind.BUILD),
            ("register", FailureKind.REGISTRATION),
            ("user", FailureKind.USER_SETUP),
            ("env", FailureKind.ENVIRONMENT),
            ("copy", FailureKind.COMMAND),
            ("shell", FailureKind.COMMAND),
        ],
    )
    def test_kind_mapping(self, kind: str, expected: FailureKind):
        assert failure_kind_for(kind) is expected

    def test_failure_surfaces_command_and_output(self):
        receipt = Receipt.failure(
            adapter="git", step_id="clone", error="fatal", exit_status=128,
            command="git clone x", output="Cloning into 'x'...",
        )
        failure = StepFailure.from_receipt(3, Step(id="clone", kind="git"), receipt)
        assert failure.kind is FailureKind.REPOSITORY_CLONE
        assert failure.to_dict()["command"] == "git clone x"
        assert "RepositoryCloneFailure at step 4" in str(failure)

    def test_exit_code_is_failing_status(self):
        registry, mock = _mock_registry()
        mock.set_failure("a", exit_status=42)
        result = Provisioner(registry).run(_steps({"id": "a", "command": "x"}), Environment())
        assert result.exit_code == 42

    def test_exit_code_without_status(self):
        registry, mock = _mock_registry()
        mock.set_failure("a", exit_status=None)
        result = Provisioner(registry).run(_steps({"id": "a", "command": "x"}), Environment())
        assert result.exit_code == 1


# ── End to end on the built-in recipe ────────────────────────────────


class TestBuiltinRecipe:
    def test_mock_run_succeeds(self):
        recipe = load_builtin_recipe("cwe-checker")
        registry, mock = _mock_registry()
        result = Provisioner(registry, default_timeout=recipe.defaults.timeout).run(
            recipe.steps, recipe.base
        )
        assert result.ok
        assert result.steps_completed == len(recipe.steps)
        env = result.environment
        assert env.user == "bap"
        assert env.working_dir == "/home/bap"
        assert env.path[0] == "/home/bap/.opam/4.05.0/bin"
        assert mock.executed_ids[-1] == "install-plugin"

    def test_repository_failure_stops_before_build(self):
        recipe = load_builtin_recipe("cwe-checker")
        registry, mock = _mock_registry()
        mock.set_failure("add-bap-repository", error="opam: repository error", exit_status=5)
        result = Provisioner(registry).run(recipe.steps, recipe.base)
        assert result.status is RunStatus.FAILED
        assert result.exit_code == 5
        assert result.failure.kind is FailureKind.PACKAGE_INSTALL
        assert "build-plugin" not in mock.executed_ids
        assert "install-plugin" not in mock.executed_ids

    def test_full_run_with_fake_runner(self, registry, fake_runner, tmp_path):
        fake_runner.on("--list-plugins", stdout="cwe_checker\n")
        recipe = load_builtin_recipe("cwe-checker")
        result = Provisioner(registry, recipe_root=str(tmp_path)).run(recipe.steps, recipe.base)
        assert result.ok, result.failure
        commands = fake_runner.commands
        pip = next(c for c in commands if "pip install bap" in c)
        assert "sudo -n -H -u bap -- sudo -n -E -H --" in pip
        bapbuild = next(c for c in commands if "bapbuild" in c)
        assert "PATH=/home/bap/.opam/4.05.0/bin:" in bapbuild
        opam_init = next(c for c in commands if "opam init" in c)
        assert "/home/bap/.opam/4.05.0/bin" not in opam_init
