"""Source Fetcher: clone or update the application repository locally."""

from __future__ import annotations

import logging
from pathlib import Path

from vm_deploy.errors import SourceError
from vm_deploy.inputs import DeploymentRequest
from vm_deploy.shell import run_command

logger = logging.getLogger("vm_deploy.source")


def repo_dir_name(repo_url: str) -> str:
    name = repo_url.strip().rstrip("/").rsplit("/", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise SourceError(f"Cannot derive a directory name from {repo_url!r}")
    return name


def authenticated_url(repo_url: str, token: str) -> str:
    rest = repo_url.strip()
    for scheme in ("https://", "http://"):
        if rest.startswith(scheme):
            rest = rest[len(scheme):]
            break
    return f"https://{token}@{rest}"


def build_git_clone_cmd(*, auth_url: str, branch: str, dest: Path) -> list[str]:
    return ["git", "clone", "-b", branch, auth_url, str(dest)]


def build_git_pull_cmd(*, repo_dir: Path, auth_url: str, branch: str) -> list[str]:
    return ["git", "-C", str(repo_dir), "pull", auth_url, branch]


def fetch_source(request: DeploymentRequest, *, workdir: Path) -> Path:
    """Clone ``request.repo_url`` into ``workdir`` or pull the branch into an existing clone."""
    repo_dir = workdir / repo_dir_name(request.repo_url)
    auth_url = authenticated_url(request.repo_url, request.token)

    if repo_dir.is_dir():
        logger.info("Repository exists, pulling latest changes...")
        cmd = build_git_pull_cmd(repo_dir=repo_dir, auth_url=auth_url, branch=request.branch)
    else:
        logger.info("Cloning repository...")
        workdir.mkdir(parents=True, exist_ok=True)
        cmd = build_git_clone_cmd(auth_url=auth_url, branch=request.branch, dest=repo_dir)

    result = run_command(cmd, secrets=[request.token])
    if not result.ok:
        raise SourceError(f"git failed for {request.repo_url} (branch {request.branch}), exit code {result.returncode}")
    return repo_dir
