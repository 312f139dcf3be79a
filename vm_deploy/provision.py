"""Remote Provisioner: install and start Docker, Docker Compose and Nginx.

Every step is safe to re-run: tool installs are gated on an absence probe,
and apt/systemctl are idempotent on their own.
"""

from __future__ import annotations

from vm_deploy.constants import COMPOSE_RELEASE_URL, DOCKER_INSTALL_URL, NGINX_DEFAULT_SITE
from vm_deploy.remote import RemoteExecutor, RemoteScript, RemoteStep

APT_ENV = "DEBIAN_FRONTEND=noninteractive"


def command_present(tool: str) -> str:
    return f"command -v {tool} >/dev/null 2>&1"


def provision_script() -> RemoteScript:
    return RemoteScript(
        name="provision",
        steps=(
            RemoteStep(
                description="Updating system packages...",
                command=f"sudo {APT_ENV} apt-get update -y\nsudo {APT_ENV} apt-get upgrade -y",
            ),
            RemoteStep(
                description="Installing Docker...",
                command="\n".join(
                    [
                        f"curl -fsSL {DOCKER_INSTALL_URL} -o get-docker.sh",
                        "sudo sh get-docker.sh",
                        'sudo usermod -aG docker "$USER"',
                    ]
                ),
                skip_if=command_present("docker"),
            ),
            RemoteStep(
                description="Installing Docker Compose...",
                command="\n".join(
                    [
                        'sudo curl -L "'
                        + COMPOSE_RELEASE_URL
                        + '/docker-compose-$(uname -s)-$(uname -m)" -o /usr/local/bin/docker-compose',
                        "sudo chmod +x /usr/local/bin/docker-compose",
                    ]
                ),
                skip_if=command_present("docker-compose"),
            ),
            RemoteStep(
                description="Installing Nginx...",
                command=f"sudo {APT_ENV} apt-get install -y nginx",
            ),
            RemoteStep(
                description="Enabling and starting Docker and Nginx...",
                command="sudo systemctl enable docker nginx\nsudo systemctl start docker nginx",
            ),
            RemoteStep(
                description="Disabling default Nginx config to avoid conflicts...",
                command=f"sudo rm -f {NGINX_DEFAULT_SITE}",
            ),
            RemoteStep(
                description="Verifying installations...",
                command="docker --version\ndocker-compose --version\nnginx -v",
                best_effort=True,
            ),
        ),
    )


def provision_host(executor: RemoteExecutor) -> None:
    executor.run_script(provision_script())
