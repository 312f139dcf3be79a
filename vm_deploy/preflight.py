"""Preflight Checker: local key checks, host-key registration and the SSH gate."""

from __future__ import annotations

import logging
import os
import stat
import subprocess
from pathlib import Path

from vm_deploy.errors import ConfigurationError, ConnectivityError
from vm_deploy.inputs import ConnectionTarget
from vm_deploy.remote import build_ssh_connectivity_cmd
from vm_deploy.shell import run_command

logger = logging.getLogger("vm_deploy.preflight")

ACCEPTED_KEY_MODES = frozenset({0o400, 0o600})
RESTRICTED_KEY_MODE = 0o400


def default_known_hosts() -> Path:
    return Path.home() / ".ssh" / "known_hosts"


def build_keyscan_cmd(*, host: str) -> list[str]:
    return ["ssh-keyscan", "-H", host]


def build_known_host_lookup_cmd(*, host: str, known_hosts: Path) -> list[str]:
    return ["ssh-keygen", "-F", host, "-f", str(known_hosts)]


def host_key_known(host: str, known_hosts: Path) -> bool:
    if not known_hosts.is_file():
        return False
    try:
        result = subprocess.run(
            build_known_host_lookup_cmd(host=host, known_hosts=known_hosts),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def check_key_file(key_path: Path) -> None:
    if not key_path.is_file():
        raise ConfigurationError(f"SSH key not found at {key_path}")


def register_host_key(host: str, *, known_hosts: Path | None = None) -> bool:
    """Append the host's public keys to known_hosts unless already listed.

    Best-effort: returns False on failure.
    """
    known_hosts = known_hosts or default_known_hosts()
    if host_key_known(host, known_hosts):
        logger.info("%s is already in %s", host, known_hosts)
        return True

    logger.info("Adding %s to %s...", host, known_hosts)
    try:
        result = subprocess.run(
            build_keyscan_cmd(host=host),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        logger.warning("WARNING: ssh-keyscan not found; host key not registered")
        return False

    keys = (result.stdout or "").strip()
    if result.returncode != 0 or not keys:
        logger.warning("WARNING: could not fetch host keys for %s; continuing", host)
        return False

    try:
        known_hosts.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        with known_hosts.open("a", encoding="utf-8") as fh:
            fh.write(keys + "\n")
    except OSError as exc:
        logger.warning("WARNING: could not update %s: %s", known_hosts, exc)
        return False
    return True


def ensure_key_permissions(key_path: Path) -> None:
    """Warn about and try to tighten a private key readable by others. Never fatal."""
    if os.name == "nt":
        logger.info("Running on Windows - skipping permission check")
        return

    mode = stat.S_IMODE(key_path.stat().st_mode)
    if mode in ACCEPTED_KEY_MODES:
        return

    logger.warning("WARNING: SSH key permissions are %s (should be 400 or 600)", format(mode, "o"))
    logger.info("Attempting to fix permissions...")
    try:
        key_path.chmod(RESTRICTED_KEY_MODE)
    except OSError:
        logger.warning("WARNING: Could not change permissions. Continuing anyway...")


def run_local_checks(target: ConnectionTarget, *, known_hosts: Path | None = None) -> None:
    check_key_file(target.key_path)
    register_host_key(target.host, known_hosts=known_hosts)
    ensure_key_permissions(target.key_path)


def probe_ssh(target: ConnectionTarget) -> None:
    logger.info("Testing SSH connection to %s...", target.destination)
    result = run_command(build_ssh_connectivity_cmd(target=target))
    if not result.ok:
        raise ConnectivityError(f"SSH connection to {target.destination} failed")
