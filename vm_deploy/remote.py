"""Typed remote command batches and the executor that runs them over SSH.

A ``RemoteScript`` renders to a single bash program run under ``set -e`` in
one SSH session: the first failing step stops the batch. Idempotency is
explicit: a step with ``skip_if`` is skipped when its probe succeeds, and a
``best_effort`` step can fail without aborting the batch.

Security note: this module shells out to `ssh` and `scp`.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from textwrap import indent

from vm_deploy.errors import ConnectivityError, RemoteExecutionError
from vm_deploy.inputs import ConnectionTarget
from vm_deploy.shell import CommandResult, run_command

logger = logging.getLogger("vm_deploy.remote")

SSH_TRANSPORT_FAILURE = 255

REMOTE_LOG_FUNCTION = "log() { echo \"[$(date '+%Y-%m-%d %H:%M:%S')] $1\"; }"


@dataclass(frozen=True)
class RemoteStep:
    description: str
    command: str
    # Probe that succeeds when the step's outcome is already in place.
    skip_if: str | None = None
    best_effort: bool = False

    def render(self) -> str:
        body = self.command
        if self.skip_if:
            body = "\n".join(
                [
                    f"if {self.skip_if}; then",
                    f"    log {shlex.quote(f'{self.description}: already satisfied, skipping')}",
                    "else",
                    indent(body, "    "),
                    "fi",
                ]
            )
        if self.best_effort:
            warning = shlex.quote(f"WARNING: {self.description} failed (ignored)")
            body = "\n".join(["{", indent(body, "    "), f"}} || log {warning}"])
        return f"log {shlex.quote(self.description)}\n{body}"


@dataclass(frozen=True)
class RemoteScript:
    name: str
    steps: tuple[RemoteStep, ...] = field(default_factory=tuple)

    def render(self) -> str:
        lines = ["set -e", REMOTE_LOG_FUNCTION]
        lines.extend(step.render() for step in self.steps)
        return "\n".join(lines) + "\n"


def build_ssh_cmd(*, target: ConnectionTarget, remote_command: str) -> list[str]:
    return ["ssh", "-i", str(target.key_path), "-o", "BatchMode=yes", target.destination, remote_command]


def build_ssh_connectivity_cmd(*, target: ConnectionTarget) -> list[str]:
    return build_ssh_cmd(target=target, remote_command="true")


def build_scp_cmd(*, target: ConnectionTarget, local_dir: Path, remote_dir: PurePosixPath) -> list[str]:
    # "<dir>/." copies the directory's contents, not the directory itself.
    source = f"{local_dir}/."
    return ["scp", "-i", str(target.key_path), "-o", "BatchMode=yes", "-r", source, f"{target.destination}:{remote_dir}"]


def bash_command(script: str) -> str:
    return f"bash -c {shlex.quote(script)}"


class RemoteExecutor:
    """Runs remote scripts and file transfers against one host."""

    def __init__(self, target: ConnectionTarget):
        self.target = target

    def _check(self, result: CommandResult, *, what: str, script: str = "") -> CommandResult:
        if result.ok:
            return result
        if result.returncode == SSH_TRANSPORT_FAILURE:
            raise ConnectivityError(f"SSH connection to {self.target.destination} failed during {what}")
        raise RemoteExecutionError(
            f"Remote {what} failed (exit code {result.returncode})",
            script=script,
            returncode=result.returncode,
        )

    def run_script(self, script: RemoteScript) -> CommandResult:
        rendered = script.render()
        logger.info("Running remote batch '%s' on %s (%d steps)", script.name, self.target.host, len(script.steps))
        cmd = build_ssh_cmd(target=self.target, remote_command=bash_command(rendered))
        # The rendered script is long; the batch name above stands in for the command line.
        result = run_command(cmd, log_command=False)
        return self._check(result, what=f"batch '{script.name}'", script=rendered)

    def copy_tree(self, local_dir: Path, remote_dir: PurePosixPath) -> CommandResult:
        cmd = build_scp_cmd(target=self.target, local_dir=local_dir, remote_dir=remote_dir)
        return self._check(run_command(cmd), what=f"copy of {local_dir} to {remote_dir}")
