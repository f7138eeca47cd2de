"""
Environment model — the state every step reads and some steps modify.

The search path, working directory, and active identity are process-wide
state in a container build.  Here they are an explicit value threaded
through each step call, so provisioning logic can be exercised without
touching a real OS.

Environments are immutable: changing steps produce a new value.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PATH = (
    "/usr/local/sbin",
    "/usr/local/bin",
    "/usr/sbin",
    "/usr/bin",
    "/sbin",
    "/bin",
)

_VAR_RE = re.compile(r"\$\{(\w+)\}|\$(\w+)")


class Environment(BaseModel):
    """Search path, working directory and identity for step execution."""

    model_config = ConfigDict(frozen=True)

    path: tuple[str, ...] = Field(default=DEFAULT_PATH)
    working_dir: str = "/"
    user: str = "root"
    home: str = "/root"
    variables: dict[str, str] = Field(default_factory=dict)

    @property
    def search_path(self) -> str:
        """The ``PATH`` value for this environment."""
        return ":".join(self.path)

    def as_env(self) -> dict[str, str]:
        """Variables applied to every command (``PATH`` first)."""
        env = {"PATH": self.search_path}
        env.update(self.variables)
        return env

    def expand(self, value: str) -> str:
        """Expand ``~``, ``$HOME``, ``$USER`` and environment variables.

        Lookups use this environment's own values, never the invoking
        process's.  Unknown variables are left untouched.
        """
        if value == "~" or value.startswith("~/"):
            value = self.home + value[1:]

        lookup = {"HOME": self.home, "USER": self.user, "PATH": self.search_path}
        lookup.update(self.variables)

        def _sub(match: re.Match[str]) -> str:
            name = match.group(1) or match.group(2)
            return lookup.get(name, match.group(0))

        return _VAR_RE.sub(_sub, value)

    # ── Derivations ─────────────────────────────────────────────

    def prepend_path(self, *entries: str) -> Environment:
        """Return a copy with ``entries`` at the front of the search path."""
        front = _dedupe(self.expand(e) for e in entries)
        rest = tuple(p for p in self.path if p not in front)
        return self.model_copy(update={"path": front + rest})

    def append_path(self, *entries: str) -> Environment:
        """Return a copy with ``entries`` at the end of the search path."""
        back = _dedupe(self.expand(e) for e in entries)
        rest = tuple(p for p in self.path if p not in back)
        return self.model_copy(update={"path": rest + back})

    def with_user(self, user: str, home: str | None = None) -> Environment:
        """Return a copy running as ``user``."""
        if home is None:
            home = "/root" if user == "root" else f"/home/{user}"
        return self.model_copy(update={"user": user, "home": home})

    def with_working_dir(self, working_dir: str) -> Environment:
        """Return a copy with a new working directory (relative paths resolve)."""
        target = self.expand(working_dir)
        if not target.startswith("/"):
            target = f"{self.working_dir.rstrip('/')}/{target}"
        return self.model_copy(update={"working_dir": target})

    def with_variables(self, **variables: str) -> Environment:
        """Return a copy with extra variables set."""
        merged = dict(self.variables)
        merged.update({k: self.expand(str(v)) for k, v in variables.items()})
        return self.model_copy(update={"variables": merged})


def _dedupe(entries) -> tuple[str, ...]:
    seen: list[str] = []
    for entry in entries:
        if entry not in seen:
            seen.append(entry)
    return tuple(seen)
