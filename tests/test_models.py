"""
Tests for domain models — Environment, Step, Receipt, Recipe, state.
"""

import pytest
from pydantic import ValidationError

from provisioner.core.models import (
    DEFAULT_PATH,
    Environment,
    ProvisionState,
    Receipt,
    Recipe,
    Step,
)

# ── Environment ──────────────────────────────────────────────────────


class TestEnvironment:
    def test_defaults(self):
        env = Environment()
        assert env.user == "root"
        assert env.home == "/root"
        assert env.working_dir == "/"
        assert env.path == DEFAULT_PATH

    def test_frozen(self):
        env = Environment()
        with pytest.raises(ValidationError):
            env.user = "bap"

    def test_prepend_path_returns_new_value(self):
        env = Environment()
        extended = env.prepend_path("/opt/bin")
        assert extended.path[0] == "/opt/bin"
        assert "/opt/bin" not in env.path

    def test_prepend_path_moves_existing_entry(self):
        env = Environment(path=("/usr/bin", "/opt/bin"))
        assert env.prepend_path("/opt/bin").path == ("/opt/bin", "/usr/bin")

    def test_append_path(self):
        env = Environment(path=("/usr/bin",))
        assert env.append_path("/opt/bin", "/opt/bin").path == ("/usr/bin", "/opt/bin")

    def test_prepend_expands_home(self):
        env = Environment(user="bap", home="/home/bap")
        assert env.prepend_path("~/.opam/4.05.0/bin").path[0] == "/home/bap/.opam/4.05.0/bin"

    def test_search_path(self):
        assert Environment(path=("/a", "/b")).search_path == "/a:/b"

    def test_as_env_path_first(self):
        env = Environment(path=("/a",), variables={"OPAMJOBS": "1"})
        assert list(env.as_env().items()) == [("PATH", "/a"), ("OPAMJOBS", "1")]

    def test_expand_variables(self):
        env = Environment(user="bap", home="/home/bap", variables={"SWITCH": "4.05.0"})
        assert env.expand("$HOME/.opam/${SWITCH}/bin") == "/home/bap/.opam/4.05.0/bin"
        assert env.expand("$USER") == "bap"

    def test_expand_leaves_unknown(self):
        assert Environment().expand("$NOPE/x") == "$NOPE/x"

    def test_with_user_default_home(self):
        env = Environment().with_user("bap")
        assert env.user == "bap"
        assert env.home == "/home/bap"

    def test_with_working_dir_relative(self):
        env = Environment(working_dir="/home/bap")
        assert env.with_working_dir("cwe_checker/src").working_dir == "/home/bap/cwe_checker/src"
        assert env.with_working_dir("/tmp").working_dir == "/tmp"

    def test_with_variables(self):
        env = Environment().with_variables(OPAMYES="1")
        assert env.variables == {"OPAMYES": "1"}


# ── Step ─────────────────────────────────────────────────────────────


class TestStep:
    def test_extra_keys_become_params(self):
        step = Step.model_validate(
            {"id": "bap", "kind": "packages", "manager": "opam", "packages": ["bap"]}
        )
        assert step.params == {"manager": "opam", "packages": ["bap"]}

    def test_explicit_params_win(self):
        step = Step.model_validate(
            {"id": "x", "command": "a", "params": {"command": "b"}}
        )
        assert step.params["command"] == "b"

    def test_defaults(self):
        step = Step(id="x")
        assert step.kind == "shell"
        assert step.privilege == "normal"
        assert step.expected_exit == 0
        assert step.timeout is None

    def test_invalid_privilege(self):
        with pytest.raises(ValidationError):
            Step(id="x", privilege="root")

    def test_label(self):
        assert Step(id="x").label == "x"
        assert Step(id="x", name="Build it").label == "Build it"


# ── Receipt ──────────────────────────────────────────────────────────


class TestReceipt:
    def test_success(self):
        r = Receipt.success(adapter="shell", step_id="s", output="hi", exit_status=0)
        assert r.ok
        assert not r.failed
        assert r.environment is None

    def test_failure(self):
        r = Receipt.failure(adapter="shell", step_id="s", error="boom", exit_status=2)
        assert r.failed
        assert r.exit_status == 2

    def test_skip(self):
        r = Receipt.skip(adapter="shell", step_id="s", reason="dry")
        assert r.status == "skipped"
        assert r.output == "dry"
        assert not r.ok and not r.failed

    def test_carries_environment(self):
        env = Environment().with_user("bap")
        r = Receipt.success(adapter="user", step_id="u", environment=env)
        assert r.environment.user == "bap"


# ── Recipe & state ───────────────────────────────────────────────────


class TestRecipe:
    def test_duplicate_step_ids_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate step ids: a"):
            Recipe(name="r", steps=[Step(id="a"), Step(id="b"), Step(id="a")])

    def test_defaults(self):
        recipe = Recipe(name="r")
        assert recipe.defaults.timeout == 1800
        assert recipe.base == Environment()
        assert recipe.entrypoint == []

    def test_name_required(self):
        with pytest.raises(ValidationError):
            Recipe()


class TestProvisionState:
    def test_fresh(self):
        state = ProvisionState()
        assert state.last_run.run_id == ""
        assert state.environment is None

    def test_roundtrip_with_environment(self):
        state = ProvisionState(environment=Environment().with_user("bap"))
        restored = ProvisionState.model_validate(state.model_dump(mode="json"))
        assert restored.environment.user == "bap"
        assert restored.environment.path == DEFAULT_PATH
