"""
Tests for CLI commands — run, plan, check, status, history, render,
recipes, exec, and global options.
"""

import json
from pathlib import Path

from click.testing import CliRunner

from provisioner.main import cli


def _invoke(cwd: Path, *args: str):
    return CliRunner().invoke(cli, list(args), obj={"cwd": cwd})


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Provision a binary-analysis environment" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_commands_registered(self):
        result = CliRunner().invoke(cli, ["--help"])
        for name in ("run", "plan", "check", "status", "history", "render", "recipes", "exec"):
            assert name in result.output


class TestRunCommand:
    def test_mock_run(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "run", "--mock")
        assert result.exit_code == 0, result.output
        assert "[mock]" in result.output
        assert "4/4 succeeded" in result.output
        assert "✓ hello" in result.output

    def test_json(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "run", "--mock", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["run"]["status"] == "succeeded"
        assert data["run"]["environment"]["user"] == "builder"

    def test_dry_run(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "run", "--dry-run", "--mock")
        assert result.exit_code == 0
        assert "4 steps validated" in result.output
        assert not (recipe_dir / ".state").exists()

    def test_missing_recipe(self, tmp_path: Path):
        result = _invoke(tmp_path, "run", "--mock")
        assert result.exit_code == 1
        assert "No provision.yml" in result.output

    def test_failure_exit_code(self, tmp_path: Path):
        (tmp_path / "provision.yml").write_text(
            "name: broken\nsteps:\n  - {id: clone, kind: git}\n"
        )
        result = _invoke(tmp_path, "run")
        assert result.exit_code == 1
        assert "RepositoryCloneFailure" in result.output

    def test_recipe_option(self, recipe_dir: Path, tmp_path_factory):
        elsewhere = tmp_path_factory.mktemp("elsewhere")
        result = _invoke(elsewhere, "--recipe", str(recipe_dir / "provision.yml"), "run", "--mock")
        assert result.exit_code == 0
        assert (recipe_dir / ".state" / "current.json").is_file()


class TestPlanCommand:
    def test_plan(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "plan")
        assert result.exit_code == 0
        assert "$ apt-get -y install git" in result.output
        assert "as builder" in result.output

    def test_plan_builtin_json(self, tmp_path: Path):
        result = _invoke(tmp_path, "--recipe", "builtin:cwe-checker", "plan", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["recipe"] == "cwe-checker"
        pip = next(s for s in data["steps"] if s["id"] == "python-bap")
        assert pip["commands"] == ["sudo -EH pip install bap"]


class TestCheckCommand:
    def test_valid(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "check")
        assert result.exit_code == 0
        assert "Recipe is valid" in result.output

    def test_invalid_json(self, tmp_path: Path):
        (tmp_path / "provision.yml").write_text("name: x\nsteps:\n  - {id: a, kind: nope}\n")
        result = _invoke(tmp_path, "check", "--json")
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["valid"] is False


class TestStatusAndHistory:
    def test_status_before_run(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "status")
        assert result.exit_code == 0
        assert "No runs recorded yet" in result.output

    def test_status_after_run(self, recipe_dir: Path):
        _invoke(recipe_dir, "run", "--mock")
        result = _invoke(recipe_dir, "status")
        assert result.exit_code == 0
        assert "succeeded" in result.output
        assert "✓ hello [shell]" in result.output

    def test_history_json(self, recipe_dir: Path):
        _invoke(recipe_dir, "run", "--mock")
        _invoke(recipe_dir, "run", "--mock")
        result = _invoke(recipe_dir, "history", "-n", "1", "--json")
        assert result.exit_code == 0
        assert len(json.loads(result.output)) == 1

    def test_history_empty(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "history")
        assert "No runs recorded yet" in result.output


class TestRenderCommand:
    def test_stdout(self, tmp_path: Path):
        result = _invoke(tmp_path, "--recipe", "builtin:cwe-checker", "render", "dockerfile")
        assert result.exit_code == 0
        assert result.output.startswith("FROM ubuntu:bionic")

    def test_output_file(self, tmp_path: Path):
        target = tmp_path / "Dockerfile"
        result = _invoke(tmp_path, "--recipe", "builtin:cwe-checker",
                         "render", "dockerfile", "-o", str(target))
        assert result.exit_code == 0
        assert "ENTRYPOINT" in target.read_text()

    def test_refuses_overwrite(self, tmp_path: Path):
        target = tmp_path / "Dockerfile"
        target.write_text("keep me")
        result = _invoke(tmp_path, "--recipe", "builtin:cwe-checker",
                         "render", "dockerfile", "-o", str(target))
        assert result.exit_code == 1
        assert target.read_text() == "keep me"


class TestRecipesCommand:
    def test_lists_builtin(self):
        result = CliRunner().invoke(cli, ["recipes"])
        assert result.exit_code == 0
        assert "builtin:cwe-checker" in result.output


class TestExecCommand:
    def test_without_run(self, recipe_dir: Path):
        result = _invoke(recipe_dir, "exec", "--", "id")
        assert result.exit_code == 1

    def test_dry_run_prints_command(self, recipe_dir: Path):
        _invoke(recipe_dir, "run", "--mock")
        result = _invoke(recipe_dir, "exec", "--dry-run", "--", "id", "-u")
        assert result.exit_code == 0
        assert result.output.strip().endswith("env id -u")
