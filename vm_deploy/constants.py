"""Fixed names and paths shared by the deployment stages."""

from __future__ import annotations

from pathlib import PurePosixPath

DEFAULT_BRANCH = "main"

REMOTE_STAGING_DIR = PurePosixPath("/tmp/project_dir")

APP_IMAGE = "fastapi-app"
APP_CONTAINER = "fastapi-container"

NGINX_SITE_NAME = "fastapi-app"
NGINX_SITES_AVAILABLE = PurePosixPath("/etc/nginx/sites-available")
NGINX_SITES_ENABLED = PurePosixPath("/etc/nginx/sites-enabled")
NGINX_SITE_PATH = NGINX_SITES_AVAILABLE / NGINX_SITE_NAME
NGINX_DEFAULT_SITE = NGINX_SITES_ENABLED / "default"

DOCKERFILE = "Dockerfile"
COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml")

CONTAINER_SETTLE_SECONDS = 5
HTTP_PROBE_TIMEOUT = 20

DOCKER_INSTALL_URL = "https://get.docker.com"
COMPOSE_RELEASE_URL = "https://github.com/docker/compose/releases/latest/download"

DEFAULT_ENV_FILE = ".env.deploy"
