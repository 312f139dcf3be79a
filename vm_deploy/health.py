"""Validator: remote service/container/loopback checks plus an external HTTP probe.

The remote layer shows the app is up on the host; the external probe shows
it is reachable through the proxy from the operator's machine.
"""

from __future__ import annotations

import logging

import requests

from vm_deploy.constants import HTTP_PROBE_TIMEOUT
from vm_deploy.deployer import running_check_command
from vm_deploy.descriptor import BuildDescriptor
from vm_deploy.errors import RemoteExecutionError, ValidationError
from vm_deploy.remote import RemoteExecutor, RemoteScript, RemoteStep

logger = logging.getLogger("vm_deploy.health")


def remote_checks_script(descriptor: BuildDescriptor, app_port: int) -> RemoteScript:
    return RemoteScript(
        name="validate",
        steps=(
            RemoteStep(
                description="Checking Docker service...",
                command='systemctl is-active --quiet docker || { log "ERROR: Docker service not running"; exit 1; }',
            ),
            RemoteStep(
                description="Checking container status...",
                command=f'{{ {running_check_command(descriptor)}; }} || {{ log "ERROR: Container not running"; exit 1; }}',
            ),
            RemoteStep(
                description="Testing endpoint...",
                command=(
                    f"curl -s -f http://localhost:{app_port} >/dev/null"
                    ' || { log "ERROR: Application not accessible"; exit 1; }'
                ),
            ),
        ),
    )


def probe_public_endpoint(host: str, *, timeout: float = HTTP_PROBE_TIMEOUT) -> int:
    url = f"http://{host}"
    logger.info("Probing %s...", url)
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise ValidationError(f"Application not accessible remotely at {url}: {exc}") from exc

    if not response.ok:
        raise ValidationError(f"Application not accessible remotely at {url}: HTTP {response.status_code}")
    logger.info("%s answered HTTP %s", url, response.status_code)
    return int(response.status_code)


def validate_deployment(executor: RemoteExecutor, host: str, descriptor: BuildDescriptor, app_port: int) -> None:
    try:
        executor.run_script(remote_checks_script(descriptor, app_port))
    except RemoteExecutionError as exc:
        raise ValidationError(f"Remote health checks failed on {host}") from exc
    logger.info("Performing local validation...")
    probe_public_endpoint(host)
