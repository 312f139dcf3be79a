from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest


def pytest_configure() -> None:
    # Allow tests to import `vm_deploy.*` without installing the package.
    repo_root = Path(__file__).parents[2]
    sys.path.append(str(repo_root))


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    # configure_logging() detaches the package logger from root; undo it so caplog keeps working.
    logger = logging.getLogger("vm_deploy")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


BASH = shutil.which("bash")
# Real tools the rendered scripts rely on; everything else must be stubbed.
HOST_TOOLS = ("base64", "date", "grep", "uname")


class StubHost:
    """A PATH holding only stub commands, for running rendered remote scripts under bash."""

    def __init__(self, root: Path):
        self.bin = root / "bin"
        self.bin.mkdir()
        self.calls_file = root / "calls.log"
        self.calls_file.touch()
        for tool in HOST_TOOLS:
            real = shutil.which(tool)
            if real:
                (self.bin / tool).symlink_to(real)

    def stub(self, name: str, body: str = "") -> None:
        path = self.bin / name
        path.write_text(
            f'#!{BASH}\necho "{name} $*" >> "{self.calls_file}"\n{body}\nexit 0\n',
            encoding="utf-8",
        )
        path.chmod(0o755)

    def run(self, script) -> subprocess.CompletedProcess:
        return subprocess.run(
            [BASH, "-c", script.render()],
            env={"PATH": str(self.bin)},
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            check=False,
        )

    def calls(self) -> list[str]:
        return self.calls_file.read_text(encoding="utf-8").splitlines()


@pytest.fixture
def stub_host(tmp_path: Path) -> StubHost:
    if BASH is None or os.name == "nt":
        pytest.skip("needs bash and POSIX executables")
    return StubHost(tmp_path)
