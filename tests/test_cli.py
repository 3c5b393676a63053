from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from icy_ripper import __version__
from icy_ripper.cli import app as cli_app
from icy_ripper.core.icy import build_metadata_block

runner = CliRunner()

CAPTURE = (
    b"ICY 200 OK\r\nicy-name: CLI FM\r\nicy-metaint: 4\r\n\r\n"
    + b"AAAA"
    + build_metadata_block("StreamTitle='Band - Song';StreamUrl='';")
    + b"BBBB"
)


@pytest.fixture()
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    directory = tmp_path / "config"
    monkeypatch.setattr(cli_app, "CONFIG_DIR", directory)
    monkeypatch.setattr(cli_app, "CONFIG_FILE", directory / "config.ini")
    return directory


def test_version() -> None:
    result = runner.invoke(cli_app.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_init_writes_config(config_dir: Path) -> None:
    result = runner.invoke(cli_app.app, ["init"])
    assert result.exit_code == 0
    assert (config_dir / "config.ini").is_file()

    result = runner.invoke(cli_app.app, ["validate"])
    assert result.exit_code == 0
    assert "Validated Settings" in result.output


def test_rip_capture_file(tmp_path: Path, config_dir: Path) -> None:
    capture = tmp_path / "capture.icy"
    capture.write_bytes(CAPTURE)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        cli_app.app,
        ["rip", str(capture), "-o", str(out_dir), "--no-progress", "--no-tag"],
    )

    assert result.exit_code == 0, result.output
    assert (out_dir / "000 - CLI FM.mp3").read_bytes() == b"AAAA"
    assert (out_dir / "001 - Band - Song.mp3").read_bytes() == b"BBBB"

    history = (config_dir / "session_history.jsonl").read_text().splitlines()
    entry = json.loads(history[-1])
    assert entry["tracks_started"] == 1
    assert entry["bytes_written"] == 8


def test_rip_with_size_limit(tmp_path: Path, config_dir: Path) -> None:
    capture = tmp_path / "capture.icy"
    capture.write_bytes(CAPTURE)
    out_dir = tmp_path / "out"

    result = runner.invoke(
        cli_app.app,
        [
            "rip",
            str(capture),
            "-o",
            str(out_dir),
            "--no-progress",
            "--no-tag",
            "-m",
            "6",
        ],
    )

    assert result.exit_code == 0, result.output
    assert (out_dir / "001 - Band - Song.mp3").read_bytes() == b"BB"
    assert "Size Limit Reached" in result.output


def test_rip_rejects_bad_size(tmp_path: Path, config_dir: Path) -> None:
    result = runner.invoke(cli_app.app, ["rip", "x", "-m", "lots"])
    assert result.exit_code == 1


def test_rip_unknown_source_fails(tmp_path: Path, config_dir: Path) -> None:
    result = runner.invoke(
        cli_app.app, ["rip", str(tmp_path / "missing.icy"), "--no-progress"]
    )
    assert result.exit_code == 1


def test_probe_capture_file(tmp_path: Path, config_dir: Path) -> None:
    capture = tmp_path / "capture.icy"
    capture.write_bytes(CAPTURE)

    result = runner.invoke(cli_app.app, ["probe", str(capture)])

    assert result.exit_code == 0, result.output
    assert "CLI FM" in result.output
    assert "Song" in result.output
