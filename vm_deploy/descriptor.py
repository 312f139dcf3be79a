"""Build Descriptor detection: a compose file or a Dockerfile at the project root."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from vm_deploy.constants import APP_CONTAINER, COMPOSE_FILES, DOCKERFILE
from vm_deploy.errors import PreconditionError

# Regex to match ${VAR:-default} or ${VAR}
INTERPOLATION_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')

KIND_COMPOSE = "compose"
KIND_DOCKERFILE = "dockerfile"


@dataclass(frozen=True)
class BuildDescriptor:
    kind: str
    path: Path
    # Containers the health checks expect to see running.
    container_names: tuple[str, ...] = ()

    @property
    def is_compose(self) -> bool:
        return self.kind == KIND_COMPOSE


def interpolate_value(value: str) -> str:
    """
    Interpolates environment variables in a string.
    Supports ${VAR} and ${VAR:-default}.
    """
    if not isinstance(value, str):
        return value

    def replace_match(match):
        var_name = match.group(1)
        default_value = match.group(2)
        env_val = os.getenv(var_name)
        if env_val is not None:
            return env_val
        return default_value if default_value is not None else ""

    return INTERPOLATION_PATTERN.sub(replace_match, value)


def interpolate_dict(data: Any) -> Any:
    """Recursively interpolates strings in a dictionary or list."""
    if isinstance(data, dict):
        return {k: interpolate_dict(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [interpolate_dict(v) for v in data]
    elif isinstance(data, str):
        return interpolate_value(data)
    else:
        return data


def find_compose_file(project_dir: Path) -> Path | None:
    for name in COMPOSE_FILES:
        candidate = project_dir / name
        if candidate.is_file():
            return candidate
    return None


def load_docker_compose_config(compose_path: Path) -> dict[str, Any]:
    """
    Parses a compose file using PyYAML and interpolates variables.
    Returns the parsed configuration dictionary.
    """
    try:
        with open(compose_path, "r") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PreconditionError(f"Failed to parse {compose_path.name}: {e}") from e

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise PreconditionError(f"{compose_path.name} is not a valid mapping")
    return interpolate_dict(raw_config)


def extract_container_names(compose_config: dict[str, Any]) -> list[str]:
    """Explicit `container_name` values, in service order."""
    services = compose_config.get("services")
    if not isinstance(services, dict):
        return []

    names: list[str] = []
    for service_payload in services.values():
        if not isinstance(service_payload, dict):
            continue
        container_name = str(service_payload.get("container_name") or "").strip()
        if container_name:
            names.append(container_name)
    return names


def detect_descriptor(project_dir: Path) -> BuildDescriptor:
    """Find the compose file or Dockerfile the project is deployed from.

    A compose file wins when both are present, matching how the stack is started remotely.
    """
    compose_path = find_compose_file(project_dir)
    if compose_path is not None:
        config = load_docker_compose_config(compose_path)
        return BuildDescriptor(
            kind=KIND_COMPOSE,
            path=compose_path,
            container_names=tuple(extract_container_names(config)),
        )

    dockerfile = project_dir / DOCKERFILE
    if dockerfile.is_file():
        return BuildDescriptor(kind=KIND_DOCKERFILE, path=dockerfile, container_names=(APP_CONTAINER,))

    raise PreconditionError(f"{DOCKERFILE} or {COMPOSE_FILES[0]} not found in {project_dir}")
