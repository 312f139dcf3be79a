"""Input Collector: resolve the deployment parameters once, up front.

Each input resolves in order: CLI flag -> process environment -> `.env.deploy`
-> interactive prompt. The access token is only ever taken from the
environment or an unechoed prompt, and is kept out of every repr.
"""

from __future__ import annotations

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Mapping

from vm_deploy.env_schema import (
    CONNECTION_KEYS,
    INPUT_SCHEMA,
    InputKey,
    InputSpec,
    apply_defaults,
    parse_dotenv_file,
    select_schema,
    validate_known_keys,
    validate_required,
)
from vm_deploy.errors import ConfigurationError

PromptFn = Callable[[str], str]


@dataclass(frozen=True)
class ConnectionTarget:
    ssh_user: str
    host: str
    key_path: Path

    @property
    def destination(self) -> str:
        return f"{self.ssh_user}@{self.host}"


@dataclass(frozen=True)
class DeploymentRequest:
    repo_url: str
    token: str = field(repr=False)
    branch: str
    ssh_user: str
    host: str
    key_path: Path
    app_port: int

    @property
    def target(self) -> ConnectionTarget:
        return ConnectionTarget(ssh_user=self.ssh_user, host=self.host, key_path=self.key_path)


def _safe_prompt(prompt: PromptFn, text: str) -> str:
    try:
        return str(prompt(text) or "").strip()
    except EOFError:
        return ""


def parse_port(raw: str) -> int:
    try:
        port = int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"Application port must be a number, got {raw!r}") from None
    if port < 1 or port > 65535:
        raise ConfigurationError(f"Application port must be in range 1-65535, got {port}")
    return port


def expand_key_path(raw: str) -> Path:
    return Path(os.path.expandvars(raw)).expanduser()


def resolve_inputs(
    schema: Iterable[InputSpec],
    cli_values: Mapping[InputKey, str | None],
    *,
    env_file: Path,
    environ: Mapping[str, str] | None = None,
    prompt: PromptFn | None = None,
    secret_prompt: PromptFn | None = None,
    context: str = "deployment inputs",
) -> dict[str, str]:
    """Resolve every input in ``schema`` and return a key -> value mapping.

    All prompts are asked before validation so that every missing value is
    reported together, and nothing touches the network until this returns.
    """
    schema = tuple(schema)
    environ = os.environ if environ is None else environ
    prompt = prompt or input
    secret_prompt = secret_prompt or getpass.getpass

    file_kv = parse_dotenv_file(env_file)
    validate_known_keys(INPUT_SCHEMA, file_kv, context=f"{context} ({env_file})")

    resolved: dict[str, str] = {}
    for spec in schema:
        key = spec.key.value
        value = str(cli_values.get(spec.key) or "").strip()
        if not value:
            value = str(environ.get(key) or "").strip()
        if not value and spec.dotenv_allowed:
            value = file_kv.get(key, "")
        if not value:
            value = _safe_prompt(secret_prompt if spec.secret else prompt, spec.prompt)
        resolved[key] = value

    resolved = apply_defaults(schema, resolved)
    validate_required(schema, resolved, context=context)
    return resolved


def collect_request(
    cli_values: Mapping[InputKey, str | None],
    *,
    env_file: Path,
    environ: Mapping[str, str] | None = None,
    prompt: PromptFn | None = None,
    secret_prompt: PromptFn | None = None,
) -> DeploymentRequest:
    values = resolve_inputs(
        INPUT_SCHEMA,
        cli_values,
        env_file=env_file,
        environ=environ,
        prompt=prompt,
        secret_prompt=secret_prompt,
    )
    return DeploymentRequest(
        repo_url=values[InputKey.REPO_URL.value],
        token=values[InputKey.GIT_TOKEN.value],
        branch=values[InputKey.BRANCH.value],
        ssh_user=values[InputKey.SSH_USER.value],
        host=values[InputKey.SSH_HOST.value],
        key_path=expand_key_path(values[InputKey.SSH_KEY.value]),
        app_port=parse_port(values[InputKey.APP_PORT.value]),
    )


def collect_target(
    cli_values: Mapping[InputKey, str | None],
    *,
    env_file: Path,
    environ: Mapping[str, str] | None = None,
    prompt: PromptFn | None = None,
) -> ConnectionTarget:
    """Resolve only the SSH connection parameters (used by ``--cleanup``)."""
    values = resolve_inputs(
        select_schema(CONNECTION_KEYS),
        cli_values,
        env_file=env_file,
        environ=environ,
        prompt=prompt,
        context="connection inputs",
    )
    return ConnectionTarget(
        ssh_user=values[InputKey.SSH_USER.value],
        host=values[InputKey.SSH_HOST.value],
        key_path=expand_key_path(values[InputKey.SSH_KEY.value]),
    )
