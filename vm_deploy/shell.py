"""Local process execution with output relayed to the session log.

Commands that embed a secret (the token-authenticated git URL) are logged
with the secret replaced, and so is every line of their output.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Iterable, Sequence

logger = logging.getLogger("vm_deploy.shell")

REDACTED = "****"
COMMAND_NOT_FOUND = 127
COMMAND_NOT_EXECUTABLE = 126


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def redact(text: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def format_command(cmd: Sequence[str], secrets: Iterable[str] = ()) -> str:
    return redact(" ".join(cmd), list(secrets))


def run_command(
    cmd: Sequence[str],
    *,
    secrets: Iterable[str] = (),
    log_command: bool = True,
) -> CommandResult:
    """Run ``cmd``, relaying combined stdout/stderr to the log, and return its status.

    Never raises on a non-zero exit; callers decide whether a failure is fatal.
    A command that cannot be started is reported the way a shell would: exit code
    127 when missing, 126 otherwise. Undecodable output bytes are replaced.
    """
    secrets = [s for s in secrets if s]
    if log_command:
        logger.info("$ %s", format_command(cmd, secrets))

    try:
        proc = subprocess.Popen(
            list(cmd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError:
        message = f"{cmd[0]}: command not found"
        logger.error("%s", message)
        return CommandResult(returncode=COMMAND_NOT_FOUND, output=message)
    except OSError as exc:
        message = f"{cmd[0]}: {exc.strerror or exc}"
        logger.error("%s", message)
        return CommandResult(returncode=COMMAND_NOT_EXECUTABLE, output=message)

    lines: list[str] = []
    for raw in proc.stdout:
        line = redact(raw.rstrip("\n"), secrets)
        lines.append(line)
        logger.info("%s", line)
    returncode = proc.wait()
    return CommandResult(returncode=returncode, output="\n".join(lines))
