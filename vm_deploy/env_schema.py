"""Deterministic schema for the deployment inputs.

This module is the single source of truth for:
- which inputs exist and the order they are prompted in
- the environment / `.env.deploy` key each one can be pre-seeded from
- whether an input is secret (never echoed, never read from a file) and its default

Design goals:
- No guessing: unknown keys in `.env.deploy` are an error.
- Fail fast with every problem reported at once.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping

from dotenv import dotenv_values

from vm_deploy.constants import DEFAULT_BRANCH
from vm_deploy.errors import InputValidationError


class InputKey(str, Enum):
    REPO_URL = "DEPLOY_REPO_URL"
    GIT_TOKEN = "DEPLOY_GIT_TOKEN"
    BRANCH = "DEPLOY_BRANCH"
    SSH_USER = "DEPLOY_SSH_USER"
    SSH_HOST = "DEPLOY_SSH_HOST"
    SSH_KEY = "DEPLOY_SSH_KEY"
    APP_PORT = "DEPLOY_APP_PORT"


@dataclass(frozen=True)
class InputSpec:
    key: InputKey
    prompt: str
    mandatory: bool = True
    default: str | None = None
    secret: bool = False
    # Secrets may come from the process environment but never from a file on disk.
    dotenv_allowed: bool = True


INPUT_SCHEMA: tuple[InputSpec, ...] = (
    InputSpec(key=InputKey.REPO_URL, prompt="Enter Git Repository URL: "),
    InputSpec(
        key=InputKey.GIT_TOKEN,
        prompt="Enter Personal Access Token: ",
        secret=True,
        dotenv_allowed=False,
    ),
    InputSpec(
        key=InputKey.BRANCH,
        prompt=f"Enter Branch Name (default: {DEFAULT_BRANCH}): ",
        default=DEFAULT_BRANCH,
    ),
    InputSpec(key=InputKey.SSH_USER, prompt="Enter SSH Username: "),
    InputSpec(key=InputKey.SSH_HOST, prompt="Enter Server IP: "),
    InputSpec(key=InputKey.SSH_KEY, prompt="Enter SSH Key Path: "),
    InputSpec(key=InputKey.APP_PORT, prompt="Enter Application Port: "),
)

CONNECTION_KEYS: frozenset[InputKey] = frozenset({InputKey.SSH_USER, InputKey.SSH_HOST, InputKey.SSH_KEY})


def _schema_keys(schema: Iterable[InputSpec]) -> set[str]:
    return {spec.key.value for spec in schema}


def select_schema(keys: Iterable[InputKey]) -> tuple[InputSpec, ...]:
    wanted = set(keys)
    return tuple(spec for spec in INPUT_SCHEMA if spec.key in wanted)


def parse_dotenv_file(path: Path) -> dict[str, str]:
    """Parse a dotenv file strictly.

    - Comments are ignored.
    - Keys are preserved even if they have empty values (""), so unknown keys are still detected.
    - A missing file parses as empty.
    """
    if not path.exists():
        return {}
    kv: dict[str, str] = {}
    raw = dotenv_values(path)
    for k, v in raw.items():
        if k is None:
            continue
        key = str(k).strip()
        if not key:
            continue
        kv[key] = "" if v is None else str(v).strip()
    return kv


def validate_known_keys(schema: Iterable[InputSpec], kv: Mapping[str, str], *, context: str) -> None:
    schema = tuple(schema)
    allowed = {spec.key.value for spec in schema if spec.dotenv_allowed}
    problems: list[str] = []

    unknown = sorted(k for k in kv.keys() if k not in _schema_keys(schema))
    if unknown:
        problems.append("Unknown key(s): " + ", ".join(unknown))

    forbidden = sorted(k for k in kv.keys() if k in _schema_keys(schema) and k not in allowed)
    if forbidden:
        problems.append("Secret key(s) must not be stored on disk: " + ", ".join(forbidden))

    if problems:
        raise InputValidationError(context=context, problems=problems)


def apply_defaults(schema: Iterable[InputSpec], kv: dict[str, str]) -> dict[str, str]:
    out = dict(kv)
    for spec in schema:
        if str(out.get(spec.key.value) or "").strip():
            continue
        if spec.default is None:
            continue
        out[spec.key.value] = spec.default
    return out


def validate_required(schema: Iterable[InputSpec], kv: Mapping[str, str], *, context: str) -> None:
    missing: list[str] = []
    for spec in schema:
        if not spec.mandatory:
            continue
        if not str(kv.get(spec.key.value) or "").strip():
            missing.append(spec.key.value)
    if missing:
        raise InputValidationError(context=context, problems=["Missing required input(s): " + ", ".join(missing)])
