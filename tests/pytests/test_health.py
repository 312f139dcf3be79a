from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from vm_deploy.descriptor import BuildDescriptor
from vm_deploy.errors import RemoteExecutionError, ValidationError
from vm_deploy.health import probe_public_endpoint, remote_checks_script, validate_deployment

DOCKERFILE = BuildDescriptor(kind="dockerfile", path=Path("Dockerfile"), container_names=("fastapi-container",))


def test_remote_checks_cover_service_container_and_loopback():
    out = remote_checks_script(DOCKERFILE, 8000).render()
    assert "systemctl is-active --quiet docker" in out
    assert "grep -Fxq fastapi-container" in out
    assert "curl -s -f http://localhost:8000" in out
    assert out.index("systemctl is-active") < out.index("grep -Fxq") < out.index("curl -s -f")


def test_probe_public_endpoint_ok():
    with patch("vm_deploy.health.requests.get") as mock_get:
        mock_get.return_value.ok = True
        mock_get.return_value.status_code = 200
        assert probe_public_endpoint("1.2.3.4") == 200
    mock_get.assert_called_once_with("http://1.2.3.4", timeout=20)


def test_probe_public_endpoint_http_error():
    with patch("vm_deploy.health.requests.get") as mock_get:
        mock_get.return_value.ok = False
        mock_get.return_value.status_code = 502
        with pytest.raises(ValidationError) as exc:
            probe_public_endpoint("1.2.3.4")
    assert "502" in str(exc.value)


def test_probe_public_endpoint_connection_error():
    with patch("vm_deploy.health.requests.get", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(ValidationError):
            probe_public_endpoint("1.2.3.4")


def test_validate_deployment_remote_failure_skips_public_check():
    executor = MagicMock()
    executor.run_script.side_effect = RemoteExecutionError("failed", returncode=1)
    with patch("vm_deploy.health.requests.get") as mock_get:
        with pytest.raises(ValidationError):
            validate_deployment(executor, "1.2.3.4", DOCKERFILE, 8000)
    mock_get.assert_not_called()


def test_validate_deployment_runs_both_layers():
    executor = MagicMock()
    with patch("vm_deploy.health.requests.get") as mock_get:
        mock_get.return_value.ok = True
        mock_get.return_value.status_code = 200
        validate_deployment(executor, "1.2.3.4", DOCKERFILE, 8000)
    assert executor.run_script.call_args[0][0].name == "validate"
    mock_get.assert_called_once()
