"""
Download adapter — fetch remote files, optionally verify and run them.

Installer scripts are never piped from curl into a shell.  They are
downloaded to a file, checked against ``sha256`` when one is given,
then executed from disk with the answers the recipe supplies on stdin
(the ``yes <answer> | sh install.sh`` pattern).
"""

from __future__ import annotations

import posixpath
import shlex
import shutil
from pathlib import Path

from provisioner.adapters.base import CommandAdapter, ExecutionContext
from provisioner.core.models.receipt import Receipt
from provisioner.core.services.invocation import PlannedCommand
from provisioner.core.services.script_verify import answer_stream, verify_sha256


class DownloadAdapter(CommandAdapter):
    """Download a URL.

    Step params:
        url (str): What to fetch.
        dest (str): Where to write it (default: /tmp/provisioner-<step-id>).
        sha256 (str): Expected digest; mismatches fail before anything runs.
        run (str): Interpreter to execute the file with (e.g. 'sh').
        args (list[str]): Arguments passed to the script.
        answer (str): Answer fed to every prompt of the script.
        keep (bool): Keep the file after running it or after a failed
            run or check (default: False).
    """

    @property
    def name(self) -> str:
        return "download"

    def is_available(self) -> bool:
        return shutil.which("curl") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        url = str(context.params.get("url", ""))
        if not url:
            return False, "Missing required param: 'url'"
        if not url.startswith(("https://", "http://")):
            return False, f"Unsupported URL scheme: {url}"
        return True, ""

    def _dest(self, context: ExecutionContext) -> str:
        dest = context.params.get("dest")
        if not dest:
            return f"/tmp/provisioner-{context.step.id}"
        dest = context.environment.expand(str(dest))
        return posixpath.join(context.environment.working_dir, dest)

    def _fetch(self, context: ExecutionContext) -> PlannedCommand:
        return PlannedCommand(
            argv=[
                "curl", "-fsSL",
                "--max-time", str(context.timeout),
                "-o", self._dest(context),
                str(context.params["url"]),
            ],
            privilege=context.step.privilege,
        )

    def _run_script(self, context: ExecutionContext) -> PlannedCommand | None:
        interpreter = context.params.get("run")
        if not interpreter:
            return None
        args = [str(a) for a in context.params.get("args", [])]
        answer = context.params.get("answer")
        return PlannedCommand(
            argv=[str(interpreter), self._dest(context), *args],
            privilege=context.step.privilege,
            input_text=answer_stream(answer),
            input_display=f"yes {shlex.quote(str(answer))}" if answer is not None else None,
            expected_exit=context.step.expected_exit,
        )

    def _cleanup(self, context: ExecutionContext) -> PlannedCommand | None:
        if context.params.get("keep"):
            return None
        return PlannedCommand(
            argv=["rm", "-f", self._dest(context)],
            privilege=context.step.privilege,
        )

    def _discard(self, context: ExecutionContext, receipt: Receipt) -> Receipt:
        """Remove the downloaded file after a failure and note the outcome."""
        cleanup = self._cleanup(context)
        meta = dict(receipt.metadata)
        if cleanup is None:
            meta["leftover"] = self._dest(context)
        else:
            result = self.run_planned(context, cleanup)
            meta["cleaned_up"] = result.exit_status == 0
            if not meta["cleaned_up"]:
                meta["leftover"] = self._dest(context)
        return receipt.model_copy(update={"metadata": meta})

    def plan_commands(self, context: ExecutionContext) -> list[PlannedCommand]:
        commands = [self._fetch(context)]
        script = self._run_script(context)
        if script is not None:
            commands.append(script)
            cleanup = self._cleanup(context)
            if cleanup is not None:
                commands.append(cleanup)
        return commands

    def execute(self, context: ExecutionContext) -> Receipt:
        dest = self._dest(context)
        fetch = self._fetch(context)
        meta = {"url": context.params["url"], "dest": dest}

        fetched = self.run_sequence(context, [fetch], metadata=meta)
        if fetched.failed:
            return fetched

        expected = context.params.get("sha256")
        if expected:
            error = verify_sha256(Path(dest), str(expected))
            if error:
                failure = Receipt.failure(
                    adapter=self.name,
                    step_id=context.step.id,
                    error=error,
                    command=fetch.display(),
                    metadata={**meta, "verified": False},
                )
                return self._discard(context, failure)
            meta["verified"] = True

        script = self._run_script(context)
        if script is None:
            return fetched.model_copy(update={"metadata": {**fetched.metadata, **meta}})

        ran = self.run_sequence(context, [script], metadata=meta)
        if ran.failed:
            return self._discard(context, ran)

        cleanup = self._cleanup(context)
        if cleanup is None:
            return ran
        removed = self.run_sequence(context, [cleanup], metadata=meta)
        if removed.failed:
            return removed
        return ran.model_copy(update={"metadata": {**ran.metadata, "cleaned_up": True}})
