#!/usr/bin/env python3
"""Deploy a containerized web app to a remote Ubuntu VM over SSH.

Pipeline (fail-fast, no resume):
  inputs -> local preflight -> fetch source -> verify build descriptor
  -> SSH probe -> provision host -> deploy container -> configure Nginx -> validate

`--cleanup` skips all of it and tears the deployment down instead.

Security note: this tool shells out to `git`, `ssh`, `ssh-keyscan` and `scp`.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from vm_deploy.cleanup import run_cleanup
from vm_deploy.constants import DEFAULT_ENV_FILE
from vm_deploy.deployer import deploy_application
from vm_deploy.descriptor import detect_descriptor
from vm_deploy.env_schema import InputKey
from vm_deploy.errors import DeployError, InputValidationError
from vm_deploy.health import validate_deployment
from vm_deploy.inputs import DeploymentRequest, collect_request, collect_target
from vm_deploy.log_setup import configure_logging, log_step
from vm_deploy.preflight import check_key_file, probe_ssh, register_host_key, run_local_checks
from vm_deploy.provision import provision_host
from vm_deploy.proxy import configure_proxy
from vm_deploy.remote import RemoteExecutor
from vm_deploy.source import fetch_source

logger = logging.getLogger("vm_deploy")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deploy a Dockerized app to a remote VM behind Nginx")
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Tear down the deployment (containers, staging dir) and restart Nginx",
    )
    resolution = "Resolution: CLI -> {key} env var -> .env.deploy -> prompt"
    parser.add_argument("--repo-url", default=None, help="Git repository URL. " + resolution.format(key=InputKey.REPO_URL.value))
    parser.add_argument("--branch", default=None, help="Branch to deploy (default: main). " + resolution.format(key=InputKey.BRANCH.value))
    parser.add_argument("--user", default=None, help="SSH username. " + resolution.format(key=InputKey.SSH_USER.value))
    parser.add_argument("--host", default=None, help="Server address. " + resolution.format(key=InputKey.SSH_HOST.value))
    parser.add_argument("--key", default=None, help="SSH private key path. " + resolution.format(key=InputKey.SSH_KEY.value))
    parser.add_argument("--port", default=None, help="Application port. " + resolution.format(key=InputKey.APP_PORT.value))
    parser.add_argument(
        "--workdir",
        default=".",
        help="Directory the repository is cloned into (default: current directory)",
    )
    parser.add_argument(
        "--log-dir",
        default=".",
        help="Directory for the deploy_<timestamp>.log session file (default: current directory)",
    )
    parser.add_argument(
        "--env-file",
        default=DEFAULT_ENV_FILE,
        help=f"Dotenv file with non-secret defaults (default: {DEFAULT_ENV_FILE})",
    )
    return parser


def cli_values(args: argparse.Namespace) -> dict[InputKey, str | None]:
    # The token has no flag: it must not end up in shell history or process listings.
    return {
        InputKey.REPO_URL: args.repo_url,
        InputKey.BRANCH: args.branch,
        InputKey.SSH_USER: args.user,
        InputKey.SSH_HOST: args.host,
        InputKey.SSH_KEY: args.key,
        InputKey.APP_PORT: args.port,
    }


def deploy(request: DeploymentRequest, *, workdir: Path, known_hosts: Path | None = None) -> None:
    log_step("Running local preflight checks")
    run_local_checks(request.target, known_hosts=known_hosts)

    log_step("Fetching repository")
    project_dir = fetch_source(request, workdir=workdir)

    log_step("Verifying project files")
    descriptor = detect_descriptor(project_dir)
    logger.info("Found %s (%s)", descriptor.path.name, descriptor.kind)

    log_step("Testing SSH connection")
    probe_ssh(request.target)
    executor = RemoteExecutor(request.target)

    log_step("Preparing remote environment")
    provision_host(executor)

    log_step("Deploying application")
    deploy_application(executor, project_dir, descriptor, request.app_port)

    log_step("Configuring Nginx")
    configure_proxy(executor, request.app_port)

    log_step("Validating deployment")
    validate_deployment(executor, request.host, descriptor, request.app_port)

    logger.info("Deployment completed successfully!")
    logger.info("Application is accessible at: http://%s", request.host)


def cleanup(args: argparse.Namespace) -> None:
    target = collect_target(cli_values(args), env_file=Path(args.env_file))
    check_key_file(target.key_path)
    register_host_key(target.host)
    run_cleanup(RemoteExecutor(target))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    log_path = configure_logging(Path(args.log_dir))
    logger.info("Logging to %s", log_path)

    try:
        if args.cleanup:
            cleanup(args)
        else:
            logger.info("Collecting user input...")
            request = collect_request(cli_values(args), env_file=Path(args.env_file))
            deploy(request, workdir=Path(args.workdir).resolve())
    except InputValidationError as exc:
        logger.error("ERROR: %s", exc.format())
        return EXIT_FAILURE
    except DeployError as exc:
        logger.error("ERROR: %s", exc)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
