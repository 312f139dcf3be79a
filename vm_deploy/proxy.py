"""Proxy Configurator: write, validate and activate the Nginx reverse-proxy site.

The reload runs in its own SSH session and only after the syntax check
batch succeeded, so a configuration that fails `nginx -t` is never
reloaded. A failed check also restores the previous site file.
"""

from __future__ import annotations

import base64
import logging
import shlex
from textwrap import dedent, indent

from vm_deploy.constants import NGINX_SITE_PATH, NGINX_SITES_ENABLED
from vm_deploy.errors import RemoteExecutionError, ValidationError
from vm_deploy.remote import RemoteExecutor, RemoteScript, RemoteStep

logger = logging.getLogger("vm_deploy.proxy")

SITE_BACKUP_SUFFIX = ".bak"
PROXY_VALIDATION_EXIT = 3


def render_site(app_port: int) -> str:
    return dedent(
        f"""
        server {{
            listen 80;
            server_name _;
            location / {{
                proxy_pass http://localhost:{app_port};
                proxy_set_header Host $host;
                proxy_set_header X-Real-IP $remote_addr;
                proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
            }}
        }}
        """
    ).lstrip()


def write_file_command(path: str, content: str) -> str:
    # base64 avoids heredoc and quoting issues with the `$` variables in the site file.
    encoded = base64.b64encode(content.encode()).decode()
    return f"echo {encoded} | base64 -d | sudo tee {shlex.quote(path)} >/dev/null"


def write_and_test_script(app_port: int) -> RemoteScript:
    site = shlex.quote(str(NGINX_SITE_PATH))
    backup = shlex.quote(f"{NGINX_SITE_PATH}{SITE_BACKUP_SUFFIX}")
    restore = "\n".join(
        [
            f"if [ -f {backup} ]; then",
            f"    sudo mv -f {backup} {site}",
            "else",
            f"    sudo rm -f {site} {shlex.quote(str(NGINX_SITES_ENABLED / NGINX_SITE_PATH.name))}",
            "fi",
        ]
    )
    return RemoteScript(
        name="proxy-config",
        steps=(
            RemoteStep(
                description="Backing up current site definition...",
                command=f"sudo rm -f {backup}\nif [ -f {site} ]; then sudo cp {site} {backup}; fi",
            ),
            RemoteStep(
                description="Writing Nginx site definition...",
                command=write_file_command(str(NGINX_SITE_PATH), render_site(app_port)),
            ),
            RemoteStep(
                description="Enabling Nginx site...",
                command=f"sudo ln -sf {site} {shlex.quote(str(NGINX_SITES_ENABLED))}/",
            ),
            RemoteStep(
                description="Testing Nginx configuration...",
                command="\n".join(
                    [
                        "if ! sudo nginx -t; then",
                        '    log "ERROR: Nginx configuration test failed, restoring previous site"',
                        indent(restore, "    "),
                        f"    exit {PROXY_VALIDATION_EXIT}",
                        "fi",
                        f"sudo rm -f {backup}",
                    ]
                ),
            ),
        ),
    )


def reload_script() -> RemoteScript:
    return RemoteScript(
        name="proxy-reload",
        steps=(RemoteStep(description="Reloading Nginx...", command="sudo systemctl reload nginx"),),
    )


def configure_proxy(executor: RemoteExecutor, app_port: int) -> None:
    logger.info("Proxying port 80 to localhost:%d via %s", app_port, NGINX_SITE_PATH)
    try:
        executor.run_script(write_and_test_script(app_port))
    except RemoteExecutionError as exc:
        if exc.returncode == PROXY_VALIDATION_EXIT:
            raise ValidationError("Nginx configuration test failed; previous configuration left active") from exc
        raise
    executor.run_script(reload_script())
