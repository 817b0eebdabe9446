"""Tests for the command line entry point."""

import logging
import sys

import pytest

from dualcam_recorder import main as main_module


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "logs" / "recorder.log"

    main_module.setup_logging("WARNING", str(log_file))
    logging.getLogger("dualcam_recorder.test").warning("hello")

    assert log_file.exists()
    assert "hello" in log_file.read_text()


def test_list_command(monkeypatch, tmp_path, capsys):
    base = tmp_path / "recordings"
    base.mkdir()
    (base / "20240101_000000.avi").write_bytes(b"x")
    (base / "20240102_000000_temp.avi").write_bytes(b"x")
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"recording:\n  base_directory: {base}\nlog_level: ERROR\n")
    monkeypatch.setattr(sys, "argv", ["dualcam-recorder", "-c", str(config_path), "--list"])

    assert main_module.main() == 0

    out = capsys.readouterr().out
    assert "20240101_000000.avi" in out
    assert "Unfinalized temporary captures" in out
    assert "20240102_000000_temp.avi" in out


def test_bad_config_exits_nonzero(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(sys, "argv", ["dualcam-recorder", "-c", str(tmp_path / "missing.yaml")])

    assert main_module.main() == 1
    assert "Configuration error" in capsys.readouterr().err
