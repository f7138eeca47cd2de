"""
Environment adapter — change the search path, variables, or working directory.

No subprocess: the step only derives a new Environment value, which the
provisioner threads to every later step.  Steps before it never see
the change.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.receipt import Receipt
from provisioner.core.services.env_changes import apply_env_params

_KEYS = ("prepend_path", "append_path", "set", "workdir")


class EnvAdapter(Adapter):
    """Derive a new Environment.

    Step params:
        prepend_path (list[str]): Search-path entries placed first.
        append_path (list[str]): Search-path entries placed last.
        set (dict[str, str]): Variables to set.
        workdir (str): New working directory.
    """

    side_effect_free = True

    @property
    def name(self) -> str:
        return "env"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not any(context.params.get(k) for k in _KEYS):
            return False, f"Nothing to change: expected one of {', '.join(_KEYS)}"
        variables = context.params.get("set")
        if variables is not None and not isinstance(variables, dict):
            return False, "'set' must be a mapping"
        return True, ""

    def preview(self, context: ExecutionContext) -> list[str]:
        env = apply_env_params(context.environment, context.params)
        lines = []
        if env.path != context.environment.path:
            lines.append(f"PATH={env.search_path}")
        for key, value in env.variables.items():
            if context.environment.variables.get(key) != value:
                lines.append(f"{key}={value}")
        if env.working_dir != context.environment.working_dir:
            lines.append(f"cd {env.working_dir}")
        return lines

    def execute(self, context: ExecutionContext) -> Receipt:
        env = apply_env_params(context.environment, context.params)
        return Receipt.success(
            adapter=self.name,
            step_id=context.step.id,
            output="\n".join(self.preview(context)),
            exit_status=0,
            environment=env,
            metadata={"path": list(env.path), "working_dir": env.working_dir},
        )
