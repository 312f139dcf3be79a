"""Error taxonomy for a deployment run.

Every error below is fatal: ``cli.main`` logs it and exits with status 1.
Best-effort steps never raise; they log a warning instead.
"""

from __future__ import annotations


class DeployError(Exception):
    """Base class for failures that abort the run."""


class ConfigurationError(DeployError):
    """Missing or invalid input, missing key file."""


class InputValidationError(ConfigurationError):
    def __init__(self, *, context: str, problems: list[str]):
        super().__init__("; ".join(problems))
        self.context = context
        self.problems = problems

    def format(self) -> str:
        lines = [f"[inputs] validation failed: {self.context}"]
        for p in self.problems:
            lines.append(f"- {p}")
        return "\n".join(lines)


class ConnectivityError(DeployError):
    """SSH authentication or reachability failure."""


class PreconditionError(DeployError):
    """The fetched project cannot be deployed (no build descriptor)."""


class SourceError(DeployError):
    """git clone/pull failed."""


class RemoteExecutionError(DeployError):
    def __init__(self, message: str, *, script: str = "", returncode: int | None = None):
        super().__init__(message)
        self.script = script
        self.returncode = returncode


class ValidationError(DeployError):
    """A health check or the proxy syntax check failed."""
