from __future__ import annotations

import json
from pathlib import Path

from parley.app import config as app_config
from parley.app import main as app_main
from parley.errors import PermissionDenied


def _config(tmp_path: Path, **values) -> str:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text(json.dumps(values), encoding="utf-8")
    return str(cfg_path)


def _isolate_logs(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))


def test_main_list_devices(tmp_path: Path, monkeypatch, capsys) -> None:
    _isolate_logs(tmp_path, monkeypatch)
    monkeypatch.setattr(app_main.SoundDeviceMicSource, "list_devices", staticmethod(lambda: "0 Fake Mic"))
    assert app_main.main(["--config", _config(tmp_path), "--list-devices"]) == 0
    assert "0 Fake Mic" in capsys.readouterr().out


def test_main_mic_error_prints_localized_message(tmp_path: Path, monkeypatch, capsys) -> None:
    _isolate_logs(tmp_path, monkeypatch)

    async def _denied(args, logger):
        raise PermissionDenied("denied")

    monkeypatch.setattr(app_main, "_run", _denied)
    code = app_main.main(["--config", _config(tmp_path, ui_language="ko")])
    assert code == 1
    assert "마이크 접근이 거부되었습니다" in capsys.readouterr().out


def test_main_crash_prints_summary_and_hint(tmp_path: Path, monkeypatch, capsys) -> None:
    _isolate_logs(tmp_path, monkeypatch)

    async def _crash(args, logger):
        raise RuntimeError("PortAudio library not found")

    monkeypatch.setattr(app_main, "_run", _crash)
    code = app_main.main(["--config", _config(tmp_path)])
    out = capsys.readouterr().out
    assert code == 1
    assert "Parley stopped: RuntimeError: PortAudio library not found" in out
    assert "Microphone init failed" in out
    assert "parley.log" in out


def test_main_passes_resolved_args(tmp_path: Path, monkeypatch) -> None:
    _isolate_logs(tmp_path, monkeypatch)
    seen = {}

    async def _ok(args, logger):
        seen["args"] = args
        return 0

    monkeypatch.setattr(app_main, "_run", _ok)
    code = app_main.main(["--config", _config(tmp_path, environment="noisy"), "--no-tts", "--backend", "local"])
    assert code == 0
    args = seen["args"]
    assert args.environment == "noisy"
    assert args.tts_enabled is False
    assert args.backend == "local"
