"""
Environment changes — how env and user steps derive a new Environment.

Pure functions shared by the real adapters and the mock, so a mock run
threads the same environment a real run would.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

from provisioner.core.models.environment import Environment
from provisioner.core.models.step import Step


def apply_env_params(environment: Environment, params: dict[str, Any]) -> Environment:
    """Apply an ``env`` step's params.

    Params:
        prepend_path (list[str]): Entries placed first in the search path.
        append_path (list[str]): Entries placed last in the search path.
        set (dict[str, str]): Variables to set.
        workdir (str): New working directory.
    """
    env = environment
    if params.get("set"):
        env = env.with_variables(**{str(k): str(v) for k, v in params["set"].items()})
    if params.get("prepend_path"):
        env = env.prepend_path(*_as_list(params["prepend_path"]))
    if params.get("append_path"):
        env = env.append_path(*_as_list(params["append_path"]))
    if params.get("workdir"):
        env = env.with_working_dir(str(params["workdir"]))
    return env


def user_home(params: dict[str, Any]) -> str:
    """Home directory a ``user`` step creates."""
    name = str(params.get("username", ""))
    return str(params.get("home") or f"/home/{name}")


def apply_user_switch(environment: Environment, params: dict[str, Any]) -> Environment:
    """Switch identity to the account a ``user`` step created.

    With ``switch: false`` the account is created but the identity
    stays unchanged.
    """
    if not params.get("switch", True):
        return environment
    home = user_home(params)
    env = environment.with_user(str(params["username"]), home)
    if params.get("chdir", True):
        env = env.with_working_dir(home)
    return env


def environment_after(step: Step, environment: Environment) -> Environment:
    """Environment a successful run of ``step`` leaves for the next step."""
    if step.kind == "env":
        return apply_env_params(environment, step.params)
    if step.kind == "user" and step.params.get("username"):
        return apply_user_switch(environment, step.params)
    return environment


def thread_environment(
    steps: Sequence[Step], environment: Environment
) -> Iterator[tuple[int, Step, Environment]]:
    """Yield each step with the environment it would run in."""
    env = environment
    for index, step in enumerate(steps):
        yield index, step, env
        env = environment_after(step, env)


def _as_list(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]
