from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path

from vm_deploy.log_setup import configure_logging, log_step, session_log_path


def test_session_log_path_uses_start_time(tmp_path: Path) -> None:
    out = session_log_path(tmp_path, started_at=datetime(2024, 1, 2, 3, 4, 5))
    assert out == tmp_path / "deploy_20240102_030405.log"


def test_messages_go_to_file_with_timestamp(tmp_path: Path, capsys) -> None:
    log_path = configure_logging(tmp_path / "logs", started_at=datetime(2024, 1, 2, 3, 4, 5))
    logging.getLogger("vm_deploy.source").info("Cloning repository...")

    text = log_path.read_text(encoding="utf-8")
    assert re.search(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] Cloning repository\.\.\.$", text, re.MULTILINE)
    assert "Cloning repository..." in capsys.readouterr().out


def test_log_step_numbers_restart_per_session(tmp_path: Path) -> None:
    log_path = configure_logging(tmp_path, started_at=datetime(2024, 1, 2, 3, 4, 5))
    log_step("first")
    log_step("second")
    text = log_path.read_text(encoding="utf-8")
    assert "Step 1: first" in text
    assert "Step 2: second" in text

    log_path = configure_logging(tmp_path, started_at=datetime(2024, 1, 2, 3, 4, 6))
    log_step("again")
    assert "Step 1: again" in log_path.read_text(encoding="utf-8")


def test_configure_logging_replaces_handlers(tmp_path: Path) -> None:
    configure_logging(tmp_path, started_at=datetime(2024, 1, 2, 3, 4, 5))
    configure_logging(tmp_path, started_at=datetime(2024, 1, 2, 3, 4, 6))
    assert len(logging.getLogger("vm_deploy").handlers) == 2
