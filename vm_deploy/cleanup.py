"""Cleanup Operator: tear the deployment down. Every step is best-effort."""

from __future__ import annotations

import logging
import shlex

from vm_deploy.constants import APP_CONTAINER, COMPOSE_FILES, REMOTE_STAGING_DIR
from vm_deploy.remote import RemoteExecutor, RemoteScript, RemoteStep

logger = logging.getLogger("vm_deploy.cleanup")


def cleanup_script() -> RemoteScript:
    staging = shlex.quote(str(REMOTE_STAGING_DIR))
    compose_down = "\n".join(
        f"if [ -f {staging}/{name} ]; then docker-compose -f {staging}/{name} down 2>/dev/null; fi"
        for name in COMPOSE_FILES
    )
    return RemoteScript(
        name="cleanup",
        steps=(
            RemoteStep(description="Stopping compose stack...", command=compose_down, best_effort=True),
            RemoteStep(
                description="Stopping and removing container...",
                command=f"docker stop {APP_CONTAINER} 2>/dev/null\ndocker rm {APP_CONTAINER} 2>/dev/null",
                best_effort=True,
            ),
            RemoteStep(
                description="Pruning unused Docker resources...",
                command="docker system prune -f 2>/dev/null",
                best_effort=True,
            ),
            RemoteStep(
                description="Removing project directory...",
                command=f"rm -rf {staging} 2>/dev/null",
                best_effort=True,
            ),
            RemoteStep(
                description="Restarting Nginx...",
                command="sudo systemctl restart nginx 2>/dev/null",
                best_effort=True,
            ),
        ),
    )


def run_cleanup(executor: RemoteExecutor) -> None:
    logger.info("Initiating cleanup on %s...", executor.target.host)
    executor.run_script(cleanup_script())
    logger.info("Cleanup completed successfully")
