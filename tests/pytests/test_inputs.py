from __future__ import annotations

from pathlib import Path

import pytest

from vm_deploy.env_schema import InputKey
from vm_deploy.errors import ConfigurationError, InputValidationError
from vm_deploy.inputs import collect_request, collect_target, parse_port


def _answers(values: dict[str, str]):
    asked: list[str] = []

    def prompt(text: str) -> str:
        asked.append(text)
        for fragment, answer in values.items():
            if fragment in text:
                return answer
        return ""

    return prompt, asked


FULL_ANSWERS = {
    "Repository URL": "https://github.com/x/y.git",
    "Branch": "",
    "SSH Username": "ubuntu",
    "Server IP": "1.2.3.4",
    "SSH Key Path": "~/.ssh/k.pem",
    "Application Port": "8000",
}


def test_collect_request_from_prompts(tmp_path: Path) -> None:
    prompt, asked = _answers(FULL_ANSWERS)
    request = collect_request(
        {},
        env_file=tmp_path / ".env.deploy",
        environ={},
        prompt=prompt,
        secret_prompt=lambda _: "ghp_secret",
    )
    assert request.repo_url == "https://github.com/x/y.git"
    assert request.token == "ghp_secret"
    assert request.branch == "main"
    assert request.ssh_user == "ubuntu"
    assert request.host == "1.2.3.4"
    assert request.key_path == Path("~/.ssh/k.pem").expanduser()
    assert request.app_port == 8000
    assert len(asked) == 6


def test_token_not_in_repr(tmp_path: Path) -> None:
    prompt, _ = _answers(FULL_ANSWERS)
    request = collect_request(
        {}, env_file=tmp_path / ".env.deploy", environ={}, prompt=prompt, secret_prompt=lambda _: "ghp_secret"
    )
    assert "ghp_secret" not in repr(request)


def test_request_is_immutable(tmp_path: Path) -> None:
    prompt, _ = _answers(FULL_ANSWERS)
    request = collect_request(
        {}, env_file=tmp_path / ".env.deploy", environ={}, prompt=prompt, secret_prompt=lambda _: "tok"
    )
    with pytest.raises(AttributeError):
        request.host = "5.6.7.8"  # type: ignore[misc]


@pytest.mark.parametrize("missing", [k for k in FULL_ANSWERS if k != "Branch"] + ["token"])
def test_any_empty_required_input_fails(tmp_path: Path, missing: str) -> None:
    answers = dict(FULL_ANSWERS)
    token = "tok"
    if missing == "token":
        token = ""
    else:
        answers[missing] = "   "
    prompt, _ = _answers(answers)
    with pytest.raises(InputValidationError):
        collect_request(
            {}, env_file=tmp_path / ".env.deploy", environ={}, prompt=prompt, secret_prompt=lambda _: token
        )


def test_resolution_order_cli_then_env_then_dotenv(tmp_path: Path) -> None:
    env_file = tmp_path / ".env.deploy"
    env_file.write_text(
        "DEPLOY_REPO_URL=https://github.com/from/file.git\n"
        "DEPLOY_SSH_USER=file-user\n"
        "DEPLOY_SSH_HOST=10.0.0.1\n"
        "DEPLOY_SSH_KEY=/keys/file.pem\n"
        "DEPLOY_APP_PORT=9000\n",
        encoding="utf-8",
    )
    prompt, asked = _answers({})
    request = collect_request(
        {InputKey.SSH_HOST: "1.2.3.4"},
        env_file=env_file,
        environ={"DEPLOY_SSH_USER": "env-user", "DEPLOY_GIT_TOKEN": "env-token"},
        prompt=prompt,
        secret_prompt=lambda _: pytest.fail("token should come from the environment"),
    )
    assert request.host == "1.2.3.4"
    assert request.ssh_user == "env-user"
    assert request.repo_url == "https://github.com/from/file.git"
    assert request.app_port == 9000
    assert request.token == "env-token"
    # Only the branch was left to prompt for, and it defaulted.
    assert request.branch == "main"
    assert len(asked) == 1


def test_eof_on_prompt_counts_as_empty(tmp_path: Path) -> None:
    def prompt(_: str) -> str:
        raise EOFError

    with pytest.raises(InputValidationError):
        collect_request({}, env_file=tmp_path / ".env.deploy", environ={}, prompt=prompt, secret_prompt=prompt)


def test_collect_target_only_asks_connection_inputs(tmp_path: Path) -> None:
    prompt, asked = _answers(FULL_ANSWERS)
    target = collect_target({InputKey.SSH_KEY: "/keys/k.pem"}, env_file=tmp_path / ".env.deploy", environ={}, prompt=prompt)
    assert target.destination == "ubuntu@1.2.3.4"
    assert target.key_path == Path("/keys/k.pem")
    assert len(asked) == 2


@pytest.mark.parametrize("raw", ["abc", "0", "70000", "-1"])
def test_parse_port_rejects_invalid(raw: str) -> None:
    with pytest.raises(ConfigurationError):
        parse_port(raw)


def test_parse_port_accepts_valid() -> None:
    assert parse_port(" 8000 ") == 8000
