"""
Failure taxonomy — what kind of step broke a run.

Every kind shares the same policy: fatal to the whole run, no local
recovery, no rollback.  The kind only tells the operator where to look.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from provisioner.core.models.receipt import Receipt
from provisioner.core.models.step import Step


class FailureKind(str, Enum):
    PACKAGE_INSTALL = "PackageInstallFailure"
    DOWNLOAD = "DownloadFailure"
    REPOSITORY_CLONE = "RepositoryCloneFailure"
    BUILD = "BuildFailure"
    REGISTRATION = "RegistrationFailure"
    USER_SETUP = "UserSetupFailure"
    ENVIRONMENT = "EnvironmentFailure"
    COMMAND = "CommandFailure"


_KIND_BY_ADAPTER: dict[str, FailureKind] = {
    "packages": FailureKind.PACKAGE_INSTALL,
    "repository": FailureKind.PACKAGE_INSTALL,
    "download": FailureKind.DOWNLOAD,
    "git": FailureKind.REPOSITORY_CLONE,
    "build": FailureKind.BUILD,
    "register": FailureKind.REGISTRATION,
    "user": FailureKind.USER_SETUP,
    "env": FailureKind.ENVIRONMENT,
}


def failure_kind_for(step_kind: str) -> FailureKind:
    """Map a step kind to its failure kind (unknown kinds are commands)."""
    return _KIND_BY_ADAPTER.get(step_kind, FailureKind.COMMAND)


@dataclass
class StepFailure:
    """The step that terminated a run."""

    index: int
    step_id: str
    kind: FailureKind
    command: str = ""
    exit_status: int | None = None
    error: str = ""
    output: str = ""

    @classmethod
    def from_receipt(cls, index: int, step: Step, receipt: Receipt) -> StepFailure:
        return cls(
            index=index,
            step_id=step.id,
            kind=failure_kind_for(step.kind),
            command=receipt.command,
            exit_status=receipt.exit_status,
            error=receipt.error or "",
            output=receipt.output,
        )

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "step_id": self.step_id,
            "kind": self.kind.value,
            "command": self.command,
            "exit_status": self.exit_status,
            "error": self.error,
            "output": self.output,
        }

    def __str__(self) -> str:
        status = f"exit {self.exit_status}" if self.exit_status is not None else "no exit status"
        return f"{self.kind.value} at step {self.index + 1} ({self.step_id}, {status}): {self.error}"
