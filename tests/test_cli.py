from __future__ import annotations

from pathlib import Path

import pytest

from tcuwatch.__main__ import _main, _parse_args


def test_parse_args_defaults() -> None:
    args = _parse_args([])
    assert args.config is None
    assert args.dry_run is False
    assert args.verbose is False


def test_parse_args_flags() -> None:
    args = _parse_args(["-c", "monitor.json", "--dry-run", "-v"])
    assert args.config == "monitor.json"
    assert args.dry_run is True
    assert args.verbose is True


def test_invalid_config_exits_with_2(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert _main(["--config", str(tmp_path / "missing.json")]) == 2
    assert "Invalid configuration" in capsys.readouterr().err


def test_bad_port_in_env_exits_with_2(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("TCUWATCH_MQTT_PORT", "mqtt")
    assert _main([]) == 2
    assert "TCUWATCH_MQTT_PORT" in capsys.readouterr().err
