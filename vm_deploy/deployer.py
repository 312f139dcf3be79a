"""Deployer: reset the remote staging directory, copy the project, start the container."""

from __future__ import annotations

import shlex
from pathlib import Path

from vm_deploy.constants import (
    APP_CONTAINER,
    APP_IMAGE,
    CONTAINER_SETTLE_SECONDS,
    REMOTE_STAGING_DIR,
)
from vm_deploy.descriptor import BuildDescriptor
from vm_deploy.remote import RemoteExecutor, RemoteScript, RemoteStep


def container_exists(name: str, *, running_only: bool = False) -> str:
    flag = "" if running_only else " -a"
    return f"docker ps{flag} --format '{{{{.Names}}}}' | grep -Fxq {shlex.quote(name)}"


def running_check_command(descriptor: BuildDescriptor) -> str:
    """Shell condition that succeeds when the descriptor's containers are up."""
    if descriptor.container_names:
        return " && ".join(container_exists(name, running_only=True) for name in descriptor.container_names)
    # Compose file without explicit container names: any running service counts.
    return f'test -n "$(cd {REMOTE_STAGING_DIR} && docker-compose ps -q)"'


def reset_staging_script() -> RemoteScript:
    staging = shlex.quote(str(REMOTE_STAGING_DIR))
    return RemoteScript(
        name="reset-staging",
        steps=(
            RemoteStep(
                description="Cleaning up old deployment directory...",
                command=f"rm -rf {staging}\nmkdir -p {staging}",
            ),
        ),
    )


def start_script(descriptor: BuildDescriptor, app_port: int) -> RemoteScript:
    staging = shlex.quote(str(REMOTE_STAGING_DIR))
    steps: list[RemoteStep] = []
    if descriptor.is_compose:
        compose_file = shlex.quote(descriptor.path.name)
        steps.append(
            RemoteStep(
                description="Running docker-compose...",
                command=f"cd {staging}\ndocker-compose -f {compose_file} up -d --build",
            )
        )
    else:
        steps.extend(
            [
                RemoteStep(
                    description="Building Docker image...",
                    command=f"cd {staging}\ndocker build -t {APP_IMAGE} .",
                ),
                RemoteStep(
                    description="Removing previous container...",
                    command=f"docker stop {APP_CONTAINER}\ndocker rm {APP_CONTAINER}",
                    skip_if=f"! {container_exists(APP_CONTAINER)}",
                ),
                RemoteStep(
                    description="Starting Docker container...",
                    command=f"docker run -d --name {APP_CONTAINER} -p {app_port}:{app_port} {APP_IMAGE}",
                ),
            ]
        )

    steps.append(
        RemoteStep(
            description="Verifying container health...",
            command="\n".join(
                [
                    f"sleep {CONTAINER_SETTLE_SECONDS}",
                    f"if ! {{ {running_check_command(descriptor)}; }}; then",
                    '    log "ERROR: Container is not running"',
                    "    exit 1",
                    "fi",
                ]
            ),
        )
    )
    return RemoteScript(name="start", steps=tuple(steps))


def reset_staging(executor: RemoteExecutor) -> None:
    executor.run_script(reset_staging_script())


def transfer_project(executor: RemoteExecutor, project_dir: Path) -> None:
    executor.copy_tree(project_dir, REMOTE_STAGING_DIR)


def deploy_application(executor: RemoteExecutor, project_dir: Path, descriptor: BuildDescriptor, app_port: int) -> None:
    reset_staging(executor)
    transfer_project(executor, project_dir)
    executor.run_script(start_script(descriptor, app_port))
